"""
Visitor Stats Module

Tracks daily site visits and exposes public usage counters.
"""

from .factory import create_visitor_stats_module

__all__ = ["create_visitor_stats_module"]
