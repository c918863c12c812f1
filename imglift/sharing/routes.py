"""
Image sharing routes.
"""
import logging

from flask import Blueprint, abort, jsonify, redirect, request, send_from_directory

from imglift.backend.local import LocalImageStorage
from imglift.removal.routes import read_uploaded_image
from .services import SharingService

logger = logging.getLogger(__name__)


def create_sharing_routes(sharing_service: SharingService, user_service) -> Blueprint:
    """Create image sharing routes."""
    bp = Blueprint('sharing', __name__)

    @bp.route("/api/save-image", methods=["POST"])
    def save_image():
        """Store a processed image and return its short link."""
        try:
            image = read_uploaded_image(request)
            user_id = user_service.get_current_user_id()
            result = sharing_service.save_image(image, user_id)
        except Exception as e:
            logger.exception(f"Save image error: {e}")
            return jsonify({"error": str(e) or "Failed to save image", "code": "INTERNAL_ERROR"}), 500

        return jsonify(result.to_dict()), result.status_code

    @bp.route("/i/<short_id>", methods=["GET"])
    def short_link(short_id):
        """Redirect a short link to the stored image."""
        return redirect(sharing_service.resolve_short_url(short_id))

    storage = sharing_service.image_storage
    if isinstance(storage, LocalImageStorage):
        @bp.route("/files/<path:path>", methods=["GET"])
        def stored_file(path):
            """Serve objects saved by the local backend."""
            if not (storage.root / path).is_file():
                abort(404)
            return send_from_directory(storage.root, path)

    return bp
