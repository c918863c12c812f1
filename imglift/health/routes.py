"""
Health check routes.
"""
from flask import Blueprint, jsonify

from .services import HealthService


def create_health_routes(health_service: HealthService) -> Blueprint:
    """Create health check routes."""
    bp = Blueprint('health', __name__)

    @bp.route("/api/health", methods=["GET"])
    def health():
        """Health check endpoint for monitoring tools and cloud platforms."""
        report = health_service.check()
        status_code = 200 if health_service.is_healthy(report) else 503
        return jsonify(report), status_code

    return bp
