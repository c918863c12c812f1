"""
Visitor Stats Service

Records one site visit per address per day and reports public counters.
"""

import logging
from datetime import datetime
from typing import Optional

from imglift.backend.base import VisitStore
from imglift.backend.errors import BackendError

from .models import SiteStats

logger = logging.getLogger(__name__)


def local_midnight(now: Optional[datetime] = None) -> datetime:
    """Start of the current day in the server's local timezone."""
    now = now or datetime.now().astimezone()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class VisitorStatsService:
    """Service for visit tracking and site statistics."""

    def __init__(self, visit_store: VisitStore, quota_manager):
        """Initialize the visitor stats service.

        Args:
            visit_store: Store holding site visits
            quota_manager: Quota manager, used for the total removal count
        """
        self.visit_store = visit_store
        self.quota_manager = quota_manager

    def track_visit(self, ip: str, user_id: Optional[str] = None, now: Optional[datetime] = None) -> bool:
        """Record a visit unless *ip* already visited today.

        Returns:
            True when tracking succeeded (recorded or already present),
            False on a store error
        """
        try:
            if self.visit_store.has_visit_since(ip, local_midnight(now)):
                return True
            self.visit_store.add_visit(ip, user_id)
            return True
        except BackendError as e:
            logger.error(f"Error tracking visit for {ip}: {e}")
            return False

    def get_stats(self) -> SiteStats:
        """Total committed removals and recorded visits; zeros on store errors."""
        try:
            return SiteStats(
                total_removals=self.quota_manager.get_total_usage(),
                total_visitors=self.visit_store.count_visits(),
            )
        except BackendError as e:
            logger.error(f"Error fetching site stats: {e}")
            return SiteStats()
