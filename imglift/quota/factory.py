"""
Factory for creating quota management components.
"""

from typing import Optional

from config_manager import QuotaSettings
from imglift.backend.base import UsageStore

from .models import QuotaConfig, FailurePolicy
from .manager import QuotaManager
from .routes import create_quota_blueprint


def create_quota_module(
    quota_settings: QuotaSettings,
    usage_store: UsageStore,
    user_service,
    operation_timeout_seconds: Optional[float] = None,
) -> dict:
    """
    Create quota management module.

    Args:
        quota_settings: Limit, failure policy and reservation TTL
        usage_store: Durable usage ledger
        user_service: UserService used to authenticate credit queries
        operation_timeout_seconds: Timeout of the metered upstream call; the
            reservation TTL must outlast it

    Returns:
        Dictionary with:
        - manager: QuotaManager instance
        - config: QuotaConfig instance
        - blueprint: Flask blueprint serving /api/user-credits

    Raises:
        ValueError: If the reservation TTL is too short for the operation timeout
    """
    config = QuotaConfig(
        free_limit=quota_settings.free_limit,
        failure_policy=FailurePolicy.from_value(quota_settings.failure_policy),
        reservation_ttl_seconds=quota_settings.reservation_ttl_seconds
    )
    if operation_timeout_seconds is not None:
        config.check_operation_timeout(operation_timeout_seconds)

    manager = QuotaManager(
        config=config,
        usage_store=usage_store
    )

    blueprint = create_quota_blueprint(manager, user_service)

    return {
        "manager": manager,
        "config": config,
        "blueprint": blueprint
    }
