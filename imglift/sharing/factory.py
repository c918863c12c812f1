"""
Factory for creating image sharing module.
"""
from imglift.backend.base import ImageHistoryStore, ImageStorage, ShortUrlStore
from .services import SharingService
from .routes import create_sharing_routes


def create_sharing_module(
    image_storage: ImageStorage,
    short_url_store: ShortUrlStore,
    history_store: ImageHistoryStore,
    site_url: str,
    user_service
) -> dict:
    """Create image sharing module with service and routes.

    Args:
        image_storage: Object storage for processed images
        short_url_store: Short link mappings
        history_store: Image history rows
        site_url: Public base URL used in short links
        user_service: User service for optional authentication

    Returns:
        Dictionary containing the service and blueprint
    """
    sharing_service = SharingService(
        image_storage=image_storage,
        short_url_store=short_url_store,
        history_store=history_store,
        site_url=site_url
    )

    blueprint = create_sharing_routes(sharing_service, user_service)

    return {
        "service": sharing_service,
        "blueprint": blueprint
    }
