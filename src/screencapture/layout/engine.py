"""
Page Layout Engine
==================

Maps a bitmap's pixel size onto one or more document pages.

Strategies:
    CONT_PAGE (continuous):
        One page as wide as the reference page and as tall as the scaled
        image plus two margins. Rejected when taller than the maximum
        continuous length.
    MULTI_PAGE_A4 (multi-page):
        Reference pages repeated; the image is sliced into bands of
        floor(content_height / scale) source pixels, the last band holds
        the remainder.
    SINGLE_A4 (single fit):
        One reference page; the image is scaled uniformly to fit the
        content box and centred.

Selection:
    continuous hint, fits       -> CONT_PAGE
    multi-page hint             -> MULTI_PAGE_A4
    continuous hint, overflows  -> MULTI_PAGE_A4 (fell_back=True)
    anything else               -> SINGLE_A4

Design Rules:
    - Pure and synchronous; no image data is touched here
    - Same (width, height, hint) always yields the same geometry
    - LayoutOverflowError never escapes compute_geometry
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Union

from screencapture.models.errors import InvalidBitmapError, LayoutOverflowError
from screencapture.models.geometry import (
    PageDescriptor,
    PageGeometry,
    Placement,
    SourceSlice,
    Strategy,
)


logger = logging.getLogger(__name__)

# Multi-page layouts beyond this many pages are logged as a warning
PAGE_COUNT_WARNING = 500


@dataclass(frozen=True)
class LayoutConstants:
    """
    Fixed layout constants, in millimetres.

    Defaults are an A4 portrait page with 10 mm margins.
    """

    margin: float = 10.0
    page_width: float = 210.0
    page_height: float = 297.0
    px_per_mm: float = 96 / 25.4
    max_continuous_height: float = 5080.0

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def content_height(self) -> float:
        return self.page_height - 2 * self.margin

    @classmethod
    def from_config(cls, layout_config) -> "LayoutConstants":
        """Build constants from a LayoutConfig section."""
        return cls(
            margin=layout_config.margin_mm,
            page_width=layout_config.page_width_mm,
            page_height=layout_config.page_height_mm,
            px_per_mm=layout_config.px_per_mm,
            max_continuous_height=layout_config.max_continuous_mm,
        )


@dataclass
class LayoutDecision:
    """Result of strategy selection."""

    strategy: Strategy
    fell_back: bool
    continuous_height: float

    def __repr__(self) -> str:
        return (
            f"LayoutDecision(strategy={self.strategy.value}, "
            f"fell_back={self.fell_back}, "
            f"continuous_height={self.continuous_height:.1f})"
        )


class PageLayoutEngine:
    """
    Computes PageGeometry for a bitmap size and strategy hint.

    Example:
        engine = PageLayoutEngine()
        geometry = engine.compute_geometry(1600, 8000, "MULTI_PAGE_A4")
        for page in geometry.pages:
            print(page.source_slice)
    """

    def __init__(self, constants: Optional[LayoutConstants] = None) -> None:
        self.constants = constants or LayoutConstants()
        if self.constants.content_width <= 0 or self.constants.content_height <= 0:
            raise ValueError("Margins leave no content area on the reference page")

    def compute_geometry(
        self,
        width_px: int,
        height_px: int,
        strategy_hint: Union[Strategy, str, None] = None,
    ) -> PageGeometry:
        """
        Lay out a bitmap of the given size.

        Args:
            width_px: Bitmap width in pixels
            height_px: Bitmap height in pixels
            strategy_hint: Requested strategy (None/unknown = single fit)

        Returns:
            Validated PageGeometry

        Raises:
            InvalidBitmapError: If width or height is not positive
        """
        self._validate(width_px, height_px)
        decision = self.select_strategy(width_px, height_px, strategy_hint)

        if decision.strategy is Strategy.CONTINUOUS_PAGE:
            pages = [self._continuous_page(width_px, height_px)]
        elif decision.strategy is Strategy.MULTI_PAGE_FIXED:
            pages = self._multi_pages(width_px, height_px)
        else:
            pages = [self._single_fit_page(width_px, height_px)]

        if decision.fell_back:
            logger.info(
                f"Continuous page of {decision.continuous_height:.1f}mm exceeds "
                f"{self.constants.max_continuous_height:.1f}mm, using multi-page layout"
            )
        logger.debug(
            f"Layout {width_px}x{height_px}px -> {decision.strategy.value}, "
            f"{len(pages)} page(s)"
        )

        return PageGeometry(
            strategy=decision.strategy,
            fell_back=decision.fell_back,
            source_width_px=width_px,
            source_height_px=height_px,
            pages=pages,
        )

    def select_strategy(
        self,
        width_px: int,
        height_px: int,
        strategy_hint: Union[Strategy, str, None] = None,
    ) -> LayoutDecision:
        """
        Decide which strategy runs for a bitmap size and hint.

        Returns:
            LayoutDecision with the chosen strategy and whether a
            continuous request fell back to multi-page
        """
        self._validate(width_px, height_px)
        hint = Strategy.parse(strategy_hint)
        continuous_height = self.continuous_page_height(width_px, height_px)

        if hint is Strategy.CONTINUOUS_PAGE:
            try:
                self._continuous_page(width_px, height_px)
                return LayoutDecision(Strategy.CONTINUOUS_PAGE, False, continuous_height)
            except LayoutOverflowError:
                return LayoutDecision(Strategy.MULTI_PAGE_FIXED, True, continuous_height)

        if hint is Strategy.MULTI_PAGE_FIXED:
            return LayoutDecision(Strategy.MULTI_PAGE_FIXED, False, continuous_height)

        return LayoutDecision(Strategy.SINGLE_FIT, False, continuous_height)

    def continuous_page_height(self, width_px: int, height_px: int) -> float:
        """Total height of a continuous page for this bitmap, margins included."""
        c = self.constants
        scale = c.content_width / (width_px / c.px_per_mm)
        draw_height = (height_px / c.px_per_mm) * scale
        return draw_height + 2 * c.margin

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _continuous_page(self, width_px: int, height_px: int) -> PageDescriptor:
        c = self.constants
        page_height = self.continuous_page_height(width_px, height_px)
        if page_height > c.max_continuous_height:
            raise LayoutOverflowError(page_height, c.max_continuous_height)

        return PageDescriptor(
            page_width=c.page_width,
            page_height=page_height,
            placement=Placement(
                x=c.margin,
                y=c.margin,
                width=c.content_width,
                height=page_height - 2 * c.margin,
            ),
            source_slice=SourceSlice(y_offset_px=0, height_px=height_px),
        )

    def _multi_pages(self, width_px: int, height_px: int) -> List[PageDescriptor]:
        c = self.constants
        scale = c.content_width / width_px  # mm per source pixel
        slice_px = max(1, math.floor(c.content_height / scale))
        page_count = math.ceil(height_px / slice_px)
        if page_count > PAGE_COUNT_WARNING:
            logger.warning(
                f"Multi-page layout of a {width_px}x{height_px}px bitmap needs {page_count} pages"
            )

        pages = []
        y_src = 0
        for _ in range(page_count):
            band = min(slice_px, height_px - y_src)
            pages.append(
                PageDescriptor(
                    page_width=c.page_width,
                    page_height=c.page_height,
                    placement=Placement(
                        x=c.margin,
                        y=c.margin,
                        width=c.content_width,
                        height=band * scale,
                    ),
                    source_slice=SourceSlice(y_offset_px=y_src, height_px=band),
                )
            )
            y_src += band
        return pages

    def _single_fit_page(self, width_px: int, height_px: int) -> PageDescriptor:
        c = self.constants
        ratio = width_px / height_px
        if ratio > c.content_width / c.content_height:
            image_width = c.content_width
        else:
            image_width = c.content_height * ratio
        image_height = image_width / ratio

        return PageDescriptor(
            page_width=c.page_width,
            page_height=c.page_height,
            placement=Placement(
                x=max(c.content_width - image_width, 0.0) / 2 + c.margin,
                y=max(c.content_height - image_height, 0.0) / 2 + c.margin,
                width=image_width,
                height=image_height,
            ),
            source_slice=SourceSlice(y_offset_px=0, height_px=height_px),
        )

    @staticmethod
    def _validate(width_px: int, height_px: int) -> None:
        if width_px <= 0 or height_px <= 0:
            raise InvalidBitmapError(
                f"Cannot lay out a {width_px}x{height_px}px bitmap"
            )
