"""
Factory for creating visitor stats module.
"""
from imglift.backend.base import VisitStore
from .services import VisitorStatsService
from .routes import create_visitor_stats_blueprint


def create_visitor_stats_module(
    visit_store: VisitStore,
    quota_manager,
    user_service
) -> dict:
    """Create visitor stats module with service and routes.

    Args:
        visit_store: Store holding site visits
        quota_manager: Quota manager providing the removal total
        user_service: User service for identity resolution

    Returns:
        Dictionary containing the service and blueprint
    """
    visitor_stats_service = VisitorStatsService(visit_store, quota_manager)

    blueprint = create_visitor_stats_blueprint(
        visitor_stats_service=visitor_stats_service,
        user_service=user_service
    )

    return {
        "service": visitor_stats_service,
        "blueprint": blueprint
    }
