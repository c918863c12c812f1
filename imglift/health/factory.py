"""
Factory for creating the health check module.
"""
from .services import HealthService
from .routes import create_health_routes


def create_health_module(removebg_client, image_storage, backend_name: str) -> dict:
    """Create health module.

    Args:
        removebg_client: remove.bg client exposing ``is_configured``
        image_storage: Image storage exposing ``is_configured``
        backend_name: Name of the active storage backend

    Returns:
        Dictionary containing the service and blueprint
    """
    health_service = HealthService(removebg_client, image_storage, backend_name)
    blueprint = create_health_routes(health_service)

    return {
        "service": health_service,
        "blueprint": blueprint
    }
