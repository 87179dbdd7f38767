"""
Document Builder
================

Turns a bitmap plus its PageGeometry into a paginated PDF document.

For every page descriptor, in order:
    1. Crop the bitmap rows named by the source slice (full width)
    2. Encode the band as JPEG at a fixed quality
    3. Append a page of the descriptor's size with the band drawn at
       its placement rectangle

Design Rules:
    - Output page order equals geometry order (top-to-bottom source)
    - Exactly one page per descriptor: none added, skipped or duplicated
    - Documents are append-only and read-only once finalized
    - One raster image per page; no vector content
"""

import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from screencapture.document.encoder import encode_jpeg
from screencapture.models.bitmap import Bitmap
from screencapture.models.errors import InvalidBitmapError
from screencapture.models.geometry import PageDescriptor, PageGeometry


logger = logging.getLogger(__name__)


class DocumentFinalizedError(RuntimeError):
    """Raised when adding a page to a finalized document."""
    pass


@dataclass(frozen=True)
class DocumentPage:
    """One page of a document: its layout and the JPEG drawn on it."""

    descriptor: PageDescriptor
    image_jpeg: bytes

    def __repr__(self) -> str:
        return (
            f"DocumentPage(size={self.descriptor.page_width:.1f}x"
            f"{self.descriptor.page_height:.1f}mm, "
            f"slice={self.descriptor.source_slice.y_offset_px}+"
            f"{self.descriptor.source_slice.height_px}px, "
            f"jpeg={len(self.image_jpeg)}B)"
        )


class Document:
    """
    In-memory paginated document.

    Pages are appended in source order and rendered to PDF on demand.

    Attributes:
        title: PDF title metadata
        content_type: Always "application/pdf"
    """

    content_type = "application/pdf"

    def __init__(self, title: str = "Screen Capture") -> None:
        self.title = title
        self._pages: List[DocumentPage] = []
        self._finalized: bool = False
        self._pdf: Optional[bytes] = None

    @property
    def pages(self) -> Tuple[DocumentPage, ...]:
        return tuple(self._pages)

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def add_page(self, page: DocumentPage) -> None:
        """
        Append a page.

        Raises:
            DocumentFinalizedError: If the document is finalized
        """
        if self._finalized:
            raise DocumentFinalizedError("Cannot add pages to a finalized document")
        self._pages.append(page)

    def finalize(self) -> "Document":
        """Freeze the page list and render the PDF."""
        if not self._finalized:
            if not self._pages:
                raise DocumentFinalizedError("Cannot finalize an empty document")
            self._pdf = self._render()
            self._finalized = True
        return self

    def to_bytes(self) -> bytes:
        """PDF bytes of the finalized document."""
        self.finalize()
        return self._pdf

    def _render(self) -> bytes:
        buffer = io.BytesIO()
        first = self._pages[0].descriptor
        pdf = canvas.Canvas(
            buffer,
            pagesize=(first.page_width * mm, first.page_height * mm),
            pageCompression=1,
        )
        pdf.setTitle(self.title)

        for page in self._pages:
            d = page.descriptor
            pdf.setPageSize((d.page_width * mm, d.page_height * mm))
            p = d.placement
            # reportlab measures y from the bottom edge
            pdf.drawImage(
                ImageReader(io.BytesIO(page.image_jpeg)),
                p.x * mm,
                (d.page_height - p.y - p.height) * mm,
                width=p.width * mm,
                height=p.height * mm,
            )
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def __repr__(self) -> str:
        return f"Document(pages={self.page_count}, finalized={self._finalized})"


@dataclass(frozen=True)
class RasterArtifact:
    """
    Encoded bytes delivered as-is.

    Holds a PNG/JPEG image, or PDF bytes returned by the remote
    conversion service.
    """

    data: bytes
    content_type: str

    def to_bytes(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"RasterArtifact(content_type={self.content_type!r}, size={len(self.data)}B)"


Artifact = Union[RasterArtifact, Document]


class DocumentBuilder:
    """
    Builds Documents from a bitmap and its page geometry.

    Example:
        engine = PageLayoutEngine()
        geometry = engine.compute_geometry(bitmap.width, bitmap.height, "MULTI_PAGE_A4")
        document = DocumentBuilder(jpeg_quality=90).build(bitmap, geometry)
        pdf_bytes = document.to_bytes()
    """

    def __init__(self, jpeg_quality: int = 90, title: str = "Screen Capture") -> None:
        self.jpeg_quality = jpeg_quality
        self.title = title

    def build(self, bitmap: Bitmap, geometry: PageGeometry) -> Document:
        """
        Render every geometry page into a finalized Document.

        Raises:
            InvalidBitmapError: If the geometry was computed for a
                different bitmap size
        """
        if (bitmap.width, bitmap.height) != (geometry.source_width_px, geometry.source_height_px):
            raise InvalidBitmapError(
                f"Geometry is for {geometry.source_width_px}x{geometry.source_height_px}px, "
                f"bitmap is {bitmap.width}x{bitmap.height}px"
            )

        document = Document(title=self.title)
        for descriptor in geometry.pages:
            band = descriptor.source_slice
            if band.y_offset_px == 0 and band.height_px == bitmap.height:
                crop = bitmap
            else:
                crop = bitmap.crop_rows(band.y_offset_px, band.height_px)
            document.add_page(DocumentPage(descriptor, encode_jpeg(crop, self.jpeg_quality)))

        logger.info(
            f"Built {geometry.strategy.value} document: {document.page_count} page(s) "
            f"from {bitmap.width}x{bitmap.height}px"
        )
        return document.finalize()
