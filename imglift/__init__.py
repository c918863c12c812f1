"""
imglift: background removal service with a free-tier usage quota.
"""

from .main import create_app

__all__ = ["create_app"]
