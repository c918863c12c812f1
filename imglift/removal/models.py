"""
Data models and errors for background removal.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class UploadedImage:
    """An image received from the client."""
    data: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class RemovalResult:
    """Output of a successful removal."""
    image: bytes
    duration_ms: int
    content_type: str = "image/png"


class UploadRejected(Exception):
    """The upload failed admission checks and never reached the quota gate."""

    status_code = 400

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ServiceNotConfigured(Exception):
    """The remove.bg API key is missing."""

    status_code = 500
    code = "CONFIG_ERROR"

    def to_dict(self) -> dict:
        return {"error": "Service configuration error", "code": self.code}


class UpstreamOperationFailed(Exception):
    """remove.bg rejected the image or could not be reached.

    ``status_code`` is the upstream status when it was a 4xx, else 500.
    """

    def __init__(self, message: str, code: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.upstream_status = upstream_status

    @property
    def status_code(self) -> int:
        if self.upstream_status is not None and 400 <= self.upstream_status < 500:
            return self.upstream_status
        return 500

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}
