"""
Capture Request Schema
======================

Pydantic model for the capture parameters supplied by the host.

Input Contract:
    {
        "selector": "#report",
        "delivery_mode": "DIRECT_DOWNLOAD",
        "background": "#ffffff",
        "width_px": 1200,
        "height_px": null,
        "letter_rendering": false,
        "allow_taint": false,
        "logging": false,
        "strategy_hint": "MULTI_PAGE_A4",
        "file_name": "monthly report",
        "output_kind": "PDF"
    }

Host values often arrive as strings ("true", "1200"); pydantic coerces them.
Unknown output kinds fall back to PNG, unknown delivery modes are rejected.
"""

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_FILE_BASE = "screencapture"

_RESERVED_CHARS = re.compile(r'[\\/:*?"<>|]')


class DeliveryMode(str, Enum):
    """
    Output channel for a finished artifact.

    Attributes:
        DIRECT_DOWNLOAD: Save the artifact under its file name
        NEW_TAB: Show the artifact in a new viewer
        DB_DOWNLOAD: Upload the artifact in chunks to a remote store
    """

    DIRECT_DOWNLOAD = "DIRECT_DOWNLOAD"
    NEW_TAB = "NEW_TAB"
    DB_DOWNLOAD = "DB_DOWNLOAD"

    @classmethod
    def _missing_(cls, value: Any) -> Optional["DeliveryMode"]:
        aliases = {
            "DIRECTDOWNLOAD": cls.DIRECT_DOWNLOAD,
            "DOWNLOAD": cls.DIRECT_DOWNLOAD,
            "NEWTAB": cls.NEW_TAB,
            "NEWTABDISPLAY": cls.NEW_TAB,
            "DBDOWNLOAD": cls.DB_DOWNLOAD,
            "REMOTEUPLOAD": cls.DB_DOWNLOAD,
            "UPLOAD": cls.DB_DOWNLOAD,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().replace("_", "").upper())
        return None


class OutputKind(str, Enum):
    """Artifact format."""

    PNG = "PNG"
    JPEG = "JPEG"
    PDF = "PDF"

    @property
    def mime_type(self) -> str:
        return {
            OutputKind.PNG: "image/png",
            OutputKind.JPEG: "image/jpeg",
            OutputKind.PDF: "application/pdf",
        }[self]

    @property
    def extension(self) -> str:
        return {
            OutputKind.PNG: ".png",
            OutputKind.JPEG: ".jpg",
            OutputKind.PDF: ".pdf",
        }[self]

    @property
    def is_document(self) -> bool:
        return self is OutputKind.PDF


def sanitize_file_name(base_name: Optional[str], output_kind: OutputKind) -> str:
    """
    Build a safe output file name.

    Blank names fall back to "screencapture"; filesystem-reserved
    characters are replaced with underscores.

    Args:
        base_name: User supplied base name (no extension)
        output_kind: Determines the extension

    Returns:
        Sanitized file name with extension
    """
    if isinstance(base_name, str) and base_name.strip():
        base = base_name.strip()
    else:
        base = DEFAULT_FILE_BASE
    return _RESERVED_CHARS.sub("_", base) + output_kind.extension


class CaptureRequest(BaseModel):
    """
    Parameters for one capture, read once per request.

    Attributes:
        selector: Target element selector ("body" = whole viewport)
        delivery_mode: Download, new viewer or remote upload
        background: Background colour used behind transparent pixels
        width_px: Explicit output width (overrides measured width)
        height_px: Explicit output height (overrides measured height)
        letter_rendering: Rasterizer quality hint
        allow_taint: Rasterizer hint for cross-origin content
        logging: Log the resolved capture parameters
        strategy_hint: Page layout hint for PDF output
        file_name: Output base name (sanitized, extension added)
        output_kind: PNG, JPEG or PDF
    """

    selector: str = Field(default="body", description="Target element selector")
    delivery_mode: DeliveryMode = Field(
        default=DeliveryMode.DIRECT_DOWNLOAD,
        description="Delivery channel",
    )
    background: Optional[str] = Field(
        default=None,
        description="Background colour as #RRGGBB (None = white)",
    )
    width_px: Optional[int] = Field(default=None, gt=0, description="Width override")
    height_px: Optional[int] = Field(default=None, gt=0, description="Height override")
    letter_rendering: bool = Field(default=False, description="Letter rendering hint")
    allow_taint: bool = Field(default=False, description="Allow tainted sources")
    logging: bool = Field(default=False, description="Log resolved parameters")
    strategy_hint: Optional[str] = Field(
        default=None,
        description="CONT_PAGE, MULTI_PAGE_A4 or SINGLE_A4",
    )
    file_name: Optional[str] = Field(default=None, description="Output base name")
    output_kind: OutputKind = Field(default=OutputKind.PNG, description="Artifact format")

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "selector": "#report",
                "delivery_mode": "DIRECT_DOWNLOAD",
                "background": "#ffffff",
                "strategy_hint": "MULTI_PAGE_A4",
                "file_name": "monthly report",
                "output_kind": "PDF",
            }
        }

    @field_validator("width_px", "height_px", mode="before")
    @classmethod
    def _blank_override(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("delivery_mode", mode="before")
    @classmethod
    def _resolve_delivery_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return DeliveryMode(value)
            except ValueError:
                return value
        return value

    @field_validator("output_kind", mode="before")
    @classmethod
    def _default_output_kind(cls, value: Any) -> Any:
        if isinstance(value, OutputKind):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key == "JPG":
                return OutputKind.JPEG
            if key in OutputKind.__members__:
                return OutputKind(key)
        return OutputKind.PNG

    @property
    def sanitized_file_name(self) -> str:
        return sanitize_file_name(self.file_name, self.output_kind)
