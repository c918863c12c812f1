"""
Data models shared by the storage backends.

Rows are Pydantic models so they can be validated straight from JSON files
or PostgREST responses. ``Identity`` is a plain frozen dataclass because it
never crosses a serialization boundary on its own.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


UNKNOWN_ADDRESS = "unknown"


class IdentityKind(Enum):
    """Principal kinds that usage can be tracked against."""
    USER = "user"        # Authenticated, stable user id
    ADDRESS = "address"  # Best-effort client address


@dataclass(frozen=True)
class Identity:
    """Resolved principal for quota purposes."""
    kind: IdentityKind
    value: str
    client_ip: str = UNKNOWN_ADDRESS

    @classmethod
    def for_user(cls, user_id: str, client_ip: str = UNKNOWN_ADDRESS) -> "Identity":
        return cls(kind=IdentityKind.USER, value=user_id, client_ip=client_ip)

    @classmethod
    def for_address(cls, address: str) -> "Identity":
        address = address or UNKNOWN_ADDRESS
        return cls(kind=IdentityKind.ADDRESS, value=address, client_ip=address)

    @property
    def is_authenticated(self) -> bool:
        return self.kind == IdentityKind.USER

    @property
    def user_id(self) -> Optional[str]:
        return self.value if self.is_authenticated else None

    @property
    def key(self) -> str:
        """Storage key, ``user:{id}`` or ``ip:{address}``."""
        prefix = "user" if self.is_authenticated else "ip"
        return f"{prefix}:{self.value}"


class UsageStatus(str, Enum):
    RESERVED = "reserved"
    COMMITTED = "committed"


class UsageRecord(BaseModel):
    """One row of the removal usage ledger."""
    id: str = Field(description="Row id")
    identity_key: str = Field(description="Identity.key the row is counted against")
    user_id: Optional[str] = Field(default=None, description="Authenticated user id, if any")
    ip: str = Field(default=UNKNOWN_ADDRESS, description="Client address seen on the request")
    status: UsageStatus = Field(default=UsageStatus.COMMITTED, description="reserved or committed")
    created_at: str = Field(description="Creation time (ISO format)")
    expires_at: Optional[str] = Field(default=None, description="Reservation expiry (ISO format)")


class SiteVisit(BaseModel):
    """A tracked site visit."""
    id: str
    user_id: Optional[str] = None
    ip: str = UNKNOWN_ADDRESS
    created_at: str


class ImageHistoryEntry(BaseModel):
    """A processed image saved by a user."""
    id: str
    user_id: Optional[str] = None
    original_filename: Optional[str] = None
    processed_url: str
    storage_path: str
    file_size: int = 0
    created_at: str


class ShortUrl(BaseModel):
    """Mapping from a short id to the public object URL."""
    short_id: str
    original_url: str
    created_at: str


class AuthUser(BaseModel):
    """User returned by the authentication backend."""
    id: str
    email: Optional[str] = None


class StoredObject(BaseModel):
    """Result of an object upload."""
    path: str
    public_url: str
