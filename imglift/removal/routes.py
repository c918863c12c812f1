"""
Background removal routes.
"""
import logging
from typing import Optional

from flask import Blueprint, Request, jsonify, make_response, request

from imglift.quota.models import QuotaExceeded
from .models import ServiceNotConfigured, UploadedImage, UploadRejected, UpstreamOperationFailed
from .services import RemovalService

logger = logging.getLogger(__name__)


def read_uploaded_image(req: Request, field: str = "image") -> Optional[UploadedImage]:
    """Read a multipart file field into an UploadedImage, or None if absent."""
    storage = req.files.get(field)
    if storage is None or (not storage.filename and not storage.mimetype):
        return None
    return UploadedImage(
        data=storage.read(),
        content_type=storage.mimetype or "",
        filename=storage.filename or None,
    )


def create_removal_routes(removal_service: RemovalService, user_service) -> Blueprint:
    """Create background removal routes."""
    bp = Blueprint('removal', __name__)

    @bp.route("/api/remove-bg", methods=["POST"])
    def remove_bg():
        """Remove the background of the uploaded image."""
        try:
            image = read_uploaded_image(request)
            result = removal_service.remove_background(image, user_service.resolve_identity)
        except (UploadRejected, ServiceNotConfigured, QuotaExceeded, UpstreamOperationFailed) as e:
            return jsonify(e.to_dict()), e.status_code
        except Exception as e:
            logger.exception(f"Background removal error: {e}")
            return jsonify({
                "error": "Background removal failed. Please try again.",
                "code": "INTERNAL_ERROR",
                "details": str(e),
            }), 500

        resp = make_response(result.image)
        resp.headers["Content-Type"] = result.content_type
        resp.headers["Cache-Control"] = "no-cache"
        return resp

    return bp
