"""
Background removal through the remove.bg API.
"""

from .factory import create_removal_module

__all__ = ["create_removal_module"]
