"""
Image history routes.
"""
import logging

from flask import Blueprint, jsonify, request

from imglift.backend.errors import BackendError
from .services import HistoryService

logger = logging.getLogger(__name__)


def create_history_routes(history_service: HistoryService, user_service) -> Blueprint:
    """Create image history routes."""
    bp = Blueprint('history', __name__)

    @bp.route("/api/history", methods=["GET"])
    def list_history():
        """Paginated image history of the authenticated user."""
        user_id, error = user_service.require_auth_json()
        if error:
            return jsonify(error), 401

        try:
            page = history_service.list_history(
                user_id,
                page=request.args.get("page", 1),
                limit=request.args.get("limit", 12),
            )
        except BackendError as e:
            logger.error(f"Database query error: {e}")
            return jsonify({"error": "Failed to fetch image history", "code": "DATABASE_ERROR"}), 500
        except Exception as e:
            logger.exception(f"History API error: {e}")
            return jsonify({"error": "Failed to fetch image history", "code": "INTERNAL_ERROR"}), 500

        return jsonify(page.to_dict())

    @bp.route("/api/history", methods=["DELETE"])
    def delete_history_image():
        """Delete one image of the authenticated user."""
        image_id = request.args.get("id", "").strip()
        if not image_id:
            return jsonify({"error": "Image ID is required"}), 400

        user_id, error = user_service.require_auth_json()
        if error:
            return jsonify({"error": error["error"]}), 401

        try:
            result = history_service.delete_image(user_id, image_id)
        except Exception as e:
            logger.exception(f"Delete API error: {e}")
            return jsonify({"error": "Failed to delete image", "code": "INTERNAL_ERROR"}), 500

        return jsonify(result.to_dict()), result.status_code

    return bp
