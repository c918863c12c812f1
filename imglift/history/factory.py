"""
Factory for creating image history module.
"""
from imglift.backend.base import ImageHistoryStore, ImageStorage
from .services import HistoryService
from .routes import create_history_routes


def create_history_module(
    history_store: ImageHistoryStore,
    image_storage: ImageStorage,
    user_service
) -> dict:
    """Create image history module with service and routes.

    Args:
        history_store: Image history rows
        image_storage: Object storage holding the processed images
        user_service: User service for authentication

    Returns:
        Dictionary containing the service and blueprint
    """
    history_service = HistoryService(history_store, image_storage)

    blueprint = create_history_routes(history_service, user_service)

    return {
        "service": history_service,
        "blueprint": blueprint
    }
