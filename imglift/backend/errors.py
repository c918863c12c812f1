"""
Exceptions raised by storage and auth backends.
"""

from typing import Optional


class BackendError(Exception):
    """Base class for all backend failures."""

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class AuthBackendError(BackendError):
    """The authentication backend could not validate a credential."""


class CountingStoreUnavailable(BackendError):
    """Usage counts could not be read or reserved."""


class RecordWriteFailed(BackendError):
    """A usage record could not be committed or appended."""


class StorageBackendError(BackendError):
    """An object storage call failed."""


class NotFoundError(BackendError):
    """The requested row does not exist."""
