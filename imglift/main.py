"""
Flask application factory wiring the imglift modules together.
"""
import logging
from pathlib import Path
from typing import Optional

import requests
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from config_manager import ConfigManager
from imglift.backend.factory import create_backend_module
from imglift.health.factory import create_health_module
from imglift.history.factory import create_history_module
from imglift.quota.factory import create_quota_module
from imglift.removal.factory import create_removal_module
from imglift.sharing.factory import create_sharing_module
from imglift.user_management.factory import create_user_management_module
from imglift.visitor_stats.factory import create_visitor_stats_module

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent.parent


def create_app(
    config_manager: Optional[ConfigManager] = None,
    base_dir: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        config_manager: Configuration source; a default ConfigManager when omitted
        base_dir: Directory a relative data dir is resolved against
        session: Optional requests session shared by the remove.bg and Supabase clients

    Returns:
        Configured Flask app. The module dictionaries are kept in
        ``app.extensions["imglift"]``.
    """
    config_manager = config_manager or ConfigManager()
    app_config = config_manager.get_app_config()
    upload_config = config_manager.get_upload_config()
    removebg_config = config_manager.get_removebg_config()

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_proto=1,     # trust 1 hop for X-Forwarded-Proto
        x_host=1,      # trust 1 hop for X-Forwarded-Host
        x_prefix=1)    # trust 1 hop for X-Forwarded-Prefix

    backend_module = create_backend_module(
        storage_config=config_manager.get_storage_config(),
        supabase_config=config_manager.get_supabase_config(),
        site_url=app_config.site_url,
        base_dir=base_dir or BASE_DIR,
        session=session,
    )

    user_management_module = create_user_management_module(backend_module["auth"])
    user_service = user_management_module["service"]

    quota_module = create_quota_module(
        quota_settings=config_manager.get_quota_settings(),
        usage_store=backend_module["usage_store"],
        user_service=user_service,
        operation_timeout_seconds=removebg_config.timeout_seconds,
    )

    removal_module = create_removal_module(
        removebg_config=removebg_config,
        upload_config=upload_config,
        quota_manager=quota_module["manager"],
        user_service=user_service,
        session=session,
    )

    history_module = create_history_module(
        history_store=backend_module["history_store"],
        image_storage=backend_module["image_storage"],
        user_service=user_service,
    )

    sharing_module = create_sharing_module(
        image_storage=backend_module["image_storage"],
        short_url_store=backend_module["short_url_store"],
        history_store=backend_module["history_store"],
        site_url=app_config.site_url,
        user_service=user_service,
    )

    visitor_stats_module = create_visitor_stats_module(
        visit_store=backend_module["visit_store"],
        quota_manager=quota_module["manager"],
        user_service=user_service,
    )

    health_module = create_health_module(
        removebg_client=removal_module["client"],
        image_storage=backend_module["image_storage"],
        backend_name=backend_module["name"],
    )

    # Register blueprints
    app.register_blueprint(quota_module["blueprint"])
    app.register_blueprint(removal_module["blueprint"])
    app.register_blueprint(history_module["blueprint"])
    app.register_blueprint(sharing_module["blueprint"])
    app.register_blueprint(visitor_stats_module["blueprint"])
    app.register_blueprint(health_module["blueprint"])

    app.extensions["imglift"] = {
        "backend": backend_module,
        "user_management": user_management_module,
        "quota": quota_module,
        "removal": removal_module,
        "history": history_module,
        "sharing": sharing_module,
        "visitor_stats": visitor_stats_module,
        "health": health_module,
    }

    quota_config = quota_module["config"]
    logger.info(
        f"imglift ready: backend={backend_module['name']}, free_limit={quota_config.free_limit}, "
        f"failure_policy={quota_config.failure_policy.value}, "
        f"removebg_configured={removal_module['client'].is_configured}"
    )
    return app
