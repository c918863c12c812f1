"""
Factory for creating the background removal module.
"""
from typing import Optional

import requests

from config_manager import RemoveBgConfig, UploadConfig
from imglift.quota.manager import QuotaManager

from .client import RemoveBgClient
from .services import RemovalService
from .routes import create_removal_routes


def create_removal_module(
    removebg_config: RemoveBgConfig,
    upload_config: UploadConfig,
    quota_manager: QuotaManager,
    user_service,
    session: Optional[requests.Session] = None,
) -> dict:
    """Create background removal module with client, service and routes.

    Args:
        removebg_config: remove.bg API settings
        upload_config: Upload admission settings
        quota_manager: Free-tier quota gate
        user_service: Resolves the caller identity
        session: Optional requests session for the remove.bg client

    Returns:
        Dictionary containing the client, service and blueprint
    """
    client = RemoveBgClient(removebg_config, session=session)
    service = RemovalService(client, quota_manager, upload_config)
    blueprint = create_removal_routes(service, user_service)

    return {
        "client": client,
        "service": service,
        "blueprint": blueprint
    }
