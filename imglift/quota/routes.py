"""
Quota routes for the credit status endpoint.
"""
import logging

from flask import Blueprint, jsonify

from imglift.backend.errors import BackendError
from imglift.backend.models import Identity
from .manager import QuotaManager

logger = logging.getLogger(__name__)


def create_quota_blueprint(quota_manager: QuotaManager, user_service) -> Blueprint:
    """Create quota routes."""
    bp = Blueprint('quota', __name__)

    @bp.route("/api/user-credits", methods=["GET"])
    def user_credits():
        """Remaining free removals for the authenticated user."""
        user_id, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        total = quota_manager.config.free_limit
        try:
            credits = quota_manager.get_credits(Identity.for_user(user_id))
        except BackendError as e:
            logger.error(f"Error fetching user credits: {e}")
            return jsonify({"used": 0, "remaining": total, "total": total})
        except Exception as e:
            logger.exception(f"User credits API error: {e}")
            return jsonify({"error": "Failed to fetch credits", "code": "INTERNAL_ERROR"}), 500

        return jsonify(credits.to_dict())

    return bp
