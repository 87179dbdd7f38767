"""
Capture Output Models
=====================

Results reported back to the caller of a capture.

Output Contract:
    {
        "stage": "DONE",
        "history": ["IDLE", "PREPARING", "RASTERIZING", "ENCODING", "DISPATCHING", "DONE"],
        "file_name": "report.pdf",
        "outcome": {
            "mode": "DIRECT_DOWNLOAD",
            "file_name": "report.pdf",
            "content_type": "application/pdf",
            "size_bytes": 48211,
            "location": "/tmp/captures/report.pdf",
            "chunks": 0
        },
        "error": null
    }

Design Rules:
    - A FAILED result never carries an outcome (no partial artifact)
    - `history` lists stages in the order they were entered
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from screencapture.models.request import DeliveryMode


class CaptureStage(str, Enum):
    """
    Capture pipeline states.

    IDLE → PREPARING → RASTERIZING → ENCODING → DISPATCHING → DONE,
    with FAILED reachable from any non-terminal state.
    """

    IDLE = "IDLE"
    PREPARING = "PREPARING"
    RASTERIZING = "RASTERIZING"
    ENCODING = "ENCODING"
    DISPATCHING = "DISPATCHING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (CaptureStage.DONE, CaptureStage.FAILED)


class DispatchOutcome(BaseModel):
    """
    What a delivery branch did.

    Attributes:
        mode: Branch that ran
        file_name: Name used for the artifact (None for viewer display)
        content_type: MIME type of the artifact
        size_bytes: Artifact size
        location: Path or URL the artifact went to, when known
        chunks: Number of chunks uploaded (remote upload only)
    """

    mode: DeliveryMode
    file_name: Optional[str] = None
    content_type: str
    size_bytes: int = Field(..., ge=0)
    location: Optional[str] = None
    chunks: int = Field(default=0, ge=0)


class CaptureResult(BaseModel):
    """Final state of one capture invocation."""

    stage: CaptureStage
    history: List[CaptureStage] = Field(default_factory=list)
    file_name: Optional[str] = None
    outcome: Optional[DispatchOutcome] = None
    error: Optional[str] = Field(
        default=None,
        description="Error class and message for FAILED captures",
    )

    @property
    def succeeded(self) -> bool:
        return self.stage is CaptureStage.DONE
