"""
Layout Module
=============

Page geometry computation for paginated output.

This module provides:
    - LayoutConstants: Reference page, margin and length limits
    - LayoutDecision: Chosen strategy plus the fallback flag
    - PageLayoutEngine: Geometry for continuous, multi-page and single-fit layouts
"""

from screencapture.layout.engine import LayoutConstants, LayoutDecision, PageLayoutEngine

__all__ = [
    "LayoutConstants",
    "LayoutDecision",
    "PageLayoutEngine",
]
