"""
Data models for image history.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from imglift.backend.models import ImageHistoryEntry


DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50


@dataclass
class HistoryPage:
    """One page of a user's image history."""
    page: int
    limit: int
    images: List[ImageHistoryEntry] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        return len(self.images) == self.limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "images": [image.model_dump() for image in self.images],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "hasMore": self.has_more,
            },
        }


@dataclass
class DeleteResult:
    """Outcome of a history delete request."""
    success: bool
    status_code: int = 200
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "message": "Image deleted successfully"}
        return {"error": self.error}
