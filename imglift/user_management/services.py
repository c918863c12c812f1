"""
User identification services: bearer-token authentication and client address resolution.
"""
import logging
from typing import Optional

from flask import request

from imglift.backend.base import AuthProvider
from imglift.backend.errors import AuthBackendError
from imglift.backend.models import AuthUser, Identity, UNKNOWN_ADDRESS

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class UserService:
    """Resolves who is calling the current request."""

    def __init__(self, auth_provider: AuthProvider):
        self.auth_provider = auth_provider

    def get_bearer_token(self) -> Optional[str]:
        """Get the bearer token from the Authorization header."""
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith(BEARER_PREFIX):
            return None
        return auth_header[len(BEARER_PREFIX):] or None

    def get_current_user(self) -> Optional[AuthUser]:
        """Validate the bearer token; None if absent, invalid, or the auth backend failed."""
        token = self.get_bearer_token()
        if not token:
            return None
        try:
            return self.auth_provider.get_user(token)
        except AuthBackendError as e:
            logger.warning(f"Auth backend error while validating token: {e}")
            return None

    def get_current_user_id(self) -> Optional[str]:
        user = self.get_current_user()
        return user.id if user else None

    def get_client_ip(self) -> str:
        """Get client IP address from proxy headers.

        The first X-Forwarded-For entry wins, then X-Real-IP. These headers
        are client-controlled, so address identity is best-effort only.
        """
        header = request.headers.get("X-Forwarded-For") or request.headers.get("X-Real-IP") or ""
        ip = header.split(",")[0].strip()
        return ip or UNKNOWN_ADDRESS

    def resolve_identity(self) -> Identity:
        """Authenticated user id if the token validates, else the client address."""
        ip = self.get_client_ip()
        user_id = self.get_current_user_id()
        if user_id:
            return Identity.for_user(user_id, client_ip=ip)
        return Identity.for_address(ip)

    def require_auth_json(self) -> tuple[Optional[str], Optional[dict]]:
        """Require authentication for JSON endpoints, return error if not authenticated."""
        user_id = self.get_current_user_id()
        if not user_id:
            return None, {"error": "Unauthorized", "code": "UNAUTHORIZED"}
        return user_id, None
