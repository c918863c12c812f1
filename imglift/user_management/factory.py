"""
Factory for creating user management module.
"""
from imglift.backend.base import AuthProvider
from .services import UserService


def create_user_management_module(auth_provider: AuthProvider) -> dict:
    """Create user management module.

    Args:
        auth_provider: Backend that validates bearer tokens

    Returns:
        Dictionary containing the service
    """
    user_service = UserService(auth_provider)

    return {
        "service": user_service
    }
