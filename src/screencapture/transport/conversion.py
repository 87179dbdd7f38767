"""
Remote Conversion Client
========================

Client for an HTML-to-PDF conversion service (PDFShift compatible API).

Request:
    POST <api_url>
    Authorization: Basic base64("api:<key>")
    {"source": "<html>", "sandbox": true, "margin": "10mm"}

Response:
    200 with the PDF bytes as body.

Design Rules:
    - Fail fast on missing credentials
    - The margin sent here is its own setting, unrelated to the layout
      engine's page margin
    - The blocking HTTP call runs in a worker thread
"""

import asyncio
import html
import logging
from typing import Iterable, Optional

import requests

from screencapture.models.errors import ConversionFailure


logger = logging.getLogger(__name__)


def build_html_shell(
    fragment_html: str,
    stylesheets: Iterable[str] = (),
    inline_css: str = "",
    base_href: Optional[str] = None,
    title: str = "Screen Capture",
) -> str:
    """
    Wrap an HTML fragment in a standalone document.

    Query strings are dropped from stylesheet URLs so the conversion
    service sees stable URLs.

    Args:
        fragment_html: Markup of the captured element
        stylesheets: Stylesheet URLs to link
        inline_css: CSS rules inlined in a <style> block
        base_href: Base URL for relative references
        title: Document title

    Returns:
        Complete HTML document
    """
    head = ['<meta charset="utf-8">', f"<title>{html.escape(title)}</title>"]
    if base_href:
        head.append(f'<base href="{html.escape(base_href, quote=True)}">')
    for url in stylesheets:
        clean = url.split("?", 1)[0]
        head.append(f'<link rel="stylesheet" href="{html.escape(clean, quote=True)}">')
    if inline_css:
        head.append(f"<style>\n{inline_css}\n</style>")

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n" + "\n".join(head) + "\n</head>\n"
        "<body>\n" + fragment_html + "\n</body>\n"
        "</html>\n"
    )


class RemoteConversionClient:
    """
    Converts HTML documents to PDF through a remote API.

    Attributes:
        api_url: Conversion endpoint
        sandbox: Request non-billing (watermarked) conversions
        margin_mm: Page margin requested from the service
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        sandbox: bool = True,
        margin_mm: float = 10.0,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize conversion client.

        Raises:
            ValueError: If no API key is configured
        """
        if not api_key:
            raise ValueError(
                "Remote conversion requires an API key. "
                "Set conversion.api_key or SCREENCAPTURE_CONVERT_KEY."
            )
        self.api_url = api_url
        self.sandbox = sandbox
        self.margin_mm = margin_mm
        self.timeout = timeout
        self._auth = ("api", api_key)
        self._session = session or requests.Session()

        logger.info(
            f"RemoteConversionClient initialized: url={api_url}, sandbox={sandbox}"
        )

    async def convert(self, html_document: str) -> bytes:
        """
        Convert an HTML document to PDF bytes.

        Raises:
            ConversionFailure: On network errors or non-2xx responses
        """
        try:
            response = await asyncio.to_thread(self._post, html_document)
        except requests.RequestException as e:
            raise ConversionFailure(f"Conversion request failed: {e}")

        if not response.ok:
            raise ConversionFailure(f"Conversion service returned HTTP {response.status_code}")

        logger.info(f"Converted HTML ({len(html_document)} chars) to PDF ({len(response.content)} bytes)")
        return response.content

    def _post(self, html_document: str) -> requests.Response:
        return self._session.post(
            self.api_url,
            json={
                "source": html_document,
                "sandbox": self.sandbox,
                "margin": f"{self.margin_mm:g}mm",
            },
            auth=self._auth,
            timeout=self.timeout,
        )
