"""
Visitor Stats Routes

Flask routes for the visitor stats subsystem.
"""

from flask import Blueprint, jsonify

from .services import VisitorStatsService


def create_visitor_stats_blueprint(
    visitor_stats_service: VisitorStatsService,
    user_service
) -> Blueprint:
    """Create visitor stats blueprint with routes.

    Args:
        visitor_stats_service: The visitor stats service instance
        user_service: The user service for identity resolution

    Returns:
        Flask blueprint with visitor stats routes
    """
    blueprint = Blueprint('visitor_stats', __name__)

    @blueprint.route('/api/track-visit', methods=['POST'])
    def track_visit():
        """Track a site visit (no auth required)."""
        ip_address = user_service.get_client_ip()
        user_id = user_service.get_current_user_id()
        success = visitor_stats_service.track_visit(ip_address, user_id)
        return jsonify({'success': success})

    @blueprint.route('/api/stats', methods=['GET'])
    def api_stats():
        """Public removal and visitor counters."""
        stats = visitor_stats_service.get_stats()
        return jsonify(stats.to_dict())

    return blueprint
