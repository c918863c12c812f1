"""
Visitor Stats Models
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class SiteStats:
    """Public site counters."""
    total_removals: int = 0
    total_visitors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "totalRemovals": self.total_removals,
            "totalVisitors": self.total_visitors,
        }
