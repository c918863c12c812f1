"""
Image History Module

Lets authenticated users page through and delete their saved images.
"""

from .factory import create_history_module

__all__ = ["create_history_module"]
