"""
Image Sharing Module

Saves processed images to storage and serves short links to them.
"""

from .factory import create_sharing_module

__all__ = ["create_sharing_module"]
