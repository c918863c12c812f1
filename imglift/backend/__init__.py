"""
Storage and auth backends.
Supports a local JSON-file backend for development and a Supabase backend.
"""

from .errors import (
    BackendError,
    AuthBackendError,
    CountingStoreUnavailable,
    RecordWriteFailed,
    StorageBackendError,
    NotFoundError,
)
from .models import Identity, IdentityKind

__all__ = [
    "BackendError",
    "AuthBackendError",
    "CountingStoreUnavailable",
    "RecordWriteFailed",
    "StorageBackendError",
    "NotFoundError",
    "Identity",
    "IdentityKind",
]
