"""
Page Geometry Models
====================

Pydantic models describing how a bitmap is placed onto document pages.

Units:
    - Page sizes and placements are in millimetres, origin at the top-left
      corner of the page
    - Source slices are in bitmap pixels

Geometry Contract:
    {
        "strategy": "MULTI_PAGE_A4",
        "fell_back": false,
        "pages": [
            {
                "page_width": 210.0,
                "page_height": 297.0,
                "placement": {"x": 10.0, "y": 10.0, "width": 190.0, "height": 277.0},
                "source_slice": {"y_offset_px": 0, "height_px": 2332}
            },
            ...
        ]
    }

Invariants:
    - At least one page
    - Slices are contiguous, in increasing offset order, and their heights sum
      to the source bitmap height exactly once
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator


class Strategy(str, Enum):
    """
    Page layout strategies.

    Attributes:
        CONTINUOUS_PAGE: One custom-height page as tall as the scaled image
        MULTI_PAGE_FIXED: Fixed reference pages, image sliced vertically
        SINGLE_FIT: One reference page, image scaled to fit and centred
    """

    CONTINUOUS_PAGE = "CONT_PAGE"
    MULTI_PAGE_FIXED = "MULTI_PAGE_A4"
    SINGLE_FIT = "SINGLE_A4"

    @classmethod
    def parse(cls, hint: Union["Strategy", str, None]) -> Optional["Strategy"]:
        """
        Resolve a layout hint.

        Accepts members, wire values ("CONT_PAGE") and names in either
        constant or class style ("CONTINUOUS_PAGE", "ContinuousPage").

        Returns:
            Matching Strategy, or None for absent/unrecognised hints
        """
        if hint is None:
            return None
        if isinstance(hint, cls):
            return hint
        key = str(hint).strip().replace("_", "").replace("-", "").upper()
        if not key:
            return None
        for member in cls:
            if key in (member.value.replace("_", ""), member.name.replace("_", "")):
                return member
        return None


class Placement(BaseModel):
    """Image rectangle on a page (mm, top-left origin)."""

    x: float = Field(..., ge=0, description="Left offset in mm")
    y: float = Field(..., ge=0, description="Top offset in mm")
    width: float = Field(..., gt=0, description="Drawn image width in mm")
    height: float = Field(..., gt=0, description="Drawn image height in mm")

    class Config:
        frozen = True


class SourceSlice(BaseModel):
    """Vertical pixel band of the source bitmap."""

    y_offset_px: int = Field(..., ge=0, description="First source row")
    height_px: int = Field(..., gt=0, description="Number of source rows")

    class Config:
        frozen = True

    @property
    def end_px(self) -> int:
        return self.y_offset_px + self.height_px


class PageDescriptor(BaseModel):
    """One output page and the slice of the bitmap drawn on it."""

    page_width: float = Field(..., gt=0, description="Page width in mm")
    page_height: float = Field(..., gt=0, description="Page height in mm")
    placement: Placement
    source_slice: SourceSlice

    class Config:
        frozen = True


class PageGeometry(BaseModel):
    """
    Complete layout for one artifact.

    Attributes:
        strategy: Strategy that produced the pages
        fell_back: True when a continuous request overflowed and was
            degraded to multi-page
        source_width_px: Width of the laid-out bitmap
        source_height_px: Height of the laid-out bitmap
        pages: Page descriptors in top-to-bottom source order
    """

    strategy: Strategy
    fell_back: bool = False
    source_width_px: int = Field(..., gt=0)
    source_height_px: int = Field(..., gt=0)
    pages: List[PageDescriptor] = Field(..., min_length=1)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_slices(self) -> "PageGeometry":
        expected = 0
        for page in self.pages:
            if page.source_slice.y_offset_px != expected:
                raise ValueError(
                    f"Slice at {page.source_slice.y_offset_px} does not continue from {expected}"
                )
            expected = page.source_slice.end_px
        if expected != self.source_height_px:
            raise ValueError(
                f"Slices cover {expected}px, bitmap height is {self.source_height_px}px"
            )
        return self

    @property
    def page_count(self) -> int:
        return len(self.pages)
