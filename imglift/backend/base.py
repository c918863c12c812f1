"""
Interfaces implemented by the local and Supabase backends.

Every method may raise a subclass of ``BackendError``; callers decide
whether a failure is fatal for their endpoint.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from .models import (
    AuthUser,
    Identity,
    ImageHistoryEntry,
    ShortUrl,
    SiteVisit,
    StoredObject,
)


class AuthProvider(Protocol):
    """Validates bearer credentials."""

    name: str

    @property
    def is_configured(self) -> bool:
        """Whether the provider has what it needs to validate tokens."""

    def get_user(self, token: str) -> Optional[AuthUser]:
        """Return the user for *token*, or None if the token is not valid.

        Raises:
            AuthBackendError: If the backend could not be asked.
        """


class UsageStore(Protocol):
    """Durable removal usage ledger with an atomic conditional reservation."""

    def count_usage(self, identity: Identity) -> int:
        """Count committed usage records for *identity*.

        Raises:
            CountingStoreUnavailable
        """

    def count_all_usage(self) -> int:
        """Count committed usage records across all identities."""

    def reserve(self, identity: Identity, limit: int, ttl_seconds: int) -> Optional[str]:
        """Insert a reservation iff committed + live reservations < *limit*.

        The count and the insert happen as one indivisible step.

        Returns:
            The reservation id, or None when the limit is already reached.

        Raises:
            CountingStoreUnavailable
        """

    def commit_reservation(self, reservation_id: str) -> None:
        """Turn a reservation into a committed usage record.

        Raises:
            RecordWriteFailed
        """

    def release_reservation(self, reservation_id: str) -> None:
        """Drop a reservation whose operation did not succeed.

        Raises:
            RecordWriteFailed
        """

    def extend_reservation(self, reservation_id: str, ttl_seconds: int) -> None:
        """Push the expiry of a live reservation *ttl_seconds* into the future.

        Raises:
            RecordWriteFailed: If the reservation is gone or the write failed.
        """

    def append_usage(self, identity: Identity) -> None:
        """Append a committed usage record without any limit check.

        Raises:
            RecordWriteFailed
        """


class VisitStore(Protocol):
    """Site visit log."""

    def has_visit_since(self, ip: str, since: datetime) -> bool:
        """Whether *ip* already has a visit at or after *since*."""

    def add_visit(self, ip: str, user_id: Optional[str]) -> SiteVisit:
        """Record a visit."""

    def count_visits(self) -> int:
        """Count all recorded visits."""


class ImageHistoryStore(Protocol):
    """Per-user processed image history."""

    def list_for_user(self, user_id: str, offset: int, limit: int) -> List[ImageHistoryEntry]:
        """Return a page of entries for *user_id*, newest first."""

    def get(self, entry_id: str) -> Optional[ImageHistoryEntry]:
        """Return an entry by id, or None."""

    def add(
        self,
        user_id: Optional[str],
        original_filename: Optional[str],
        processed_url: str,
        storage_path: str,
        file_size: int,
    ) -> ImageHistoryEntry:
        """Insert an entry and return it."""

    def delete(self, entry_id: str, user_id: str) -> None:
        """Delete an entry owned by *user_id*."""


class ShortUrlStore(Protocol):
    """Short id to URL mappings."""

    def add(self, short_id: str, original_url: str) -> ShortUrl:
        """Insert a mapping."""

    def get(self, short_id: str) -> Optional[ShortUrl]:
        """Return the mapping for *short_id*, or None."""


class ImageStorage(Protocol):
    """Object storage for processed images."""

    name: str

    @property
    def is_configured(self) -> bool:
        """Whether uploads can be attempted."""

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        """Store *data* under *path*; fails if the path already exists.

        Raises:
            StorageBackendError
        """

    def remove(self, paths: List[str]) -> None:
        """Remove stored objects.

        Raises:
            StorageBackendError
        """

    def public_url(self, path: str) -> str:
        """Public URL for a stored object."""
