"""
Data models for image sharing.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class SaveImageResult:
    """Result of saving a processed image."""
    success: bool
    url: Optional[str] = None           # Short URL
    original_url: Optional[str] = None  # Public object URL
    path: Optional[str] = None          # Storage path
    history_id: Optional[str] = None
    warning: Optional[str] = None
    db_error: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        if not self.success:
            data = {"error": self.error}
            if self.code:
                data["code"] = self.code
            return data

        data = {
            "success": True,
            "url": self.url,
            "originalUrl": self.original_url,
            "path": self.path,
        }
        if self.warning:
            data["warning"] = self.warning
            data["dbError"] = self.db_error
        else:
            data["historyId"] = self.history_id
        return data
