"""
Health Module

Readiness endpoint for the upstream API and the storage backend.
"""

from .factory import create_health_module

__all__ = ["create_health_module"]
