"""
Supabase backend over the PostgREST, GoTrue and Storage HTTP APIs.

All calls are single-shot with the configured timeout; nothing is retried.
The usage reservation runs server-side in ``reserve_removal_usage``
(see ``sql/schema.sql``) so the count and the insert share one transaction.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from config_manager import SupabaseConfig

from .errors import (
    AuthBackendError,
    BackendError,
    CountingStoreUnavailable,
    NotFoundError,
    RecordWriteFailed,
    StorageBackendError,
)
from .models import (
    AuthUser,
    Identity,
    ImageHistoryEntry,
    ShortUrl,
    SiteVisit,
    StoredObject,
    UsageStatus,
)

logger = logging.getLogger(__name__)


def parse_content_range_total(header: Optional[str]) -> int:
    """Extract the total from a ``Content-Range`` header like ``0-9/42`` or ``*/0``."""
    if not header or "/" not in header:
        raise ValueError(f"Missing count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1]
    if total == "*":
        raise ValueError("Count was not computed")
    return int(total)


class SupabaseClient:
    """Thin HTTP client for a Supabase project."""

    def __init__(self, config: SupabaseConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.base_url = config.url.rstrip("/")
        self.timeout = config.timeout_seconds

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def _headers(self, token: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {token or self.config.api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        error_cls: type = BackendError,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> requests.Response:
        """Send one request; raise *error_cls* on network or HTTP errors."""
        if not self.is_configured:
            raise error_cls("Supabase is not configured", code="CONFIG_ERROR")

        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._headers(token, headers),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise error_cls(f"Supabase request failed: {e}") from e

        if resp.status_code >= 400:
            message = resp.text or resp.reason
            code = None
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message") or body.get("msg") or body.get("error") or message
                code = body.get("code") or body.get("error_code")
            raise error_cls(str(message), code=str(code) if code else None, status=resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response, error_cls: type = BackendError) -> Any:
        """Decode a 2xx body; a non-JSON reply raises *error_cls*."""
        try:
            return resp.json()
        except ValueError as e:
            raise error_cls(f"Supabase returned a non-JSON response: {e}", status=resp.status_code) from e

    # =====================
    # Auth
    # =====================

    def get_user(self, token: str) -> Optional[AuthUser]:
        """Validate an access token; None means the token was rejected."""
        try:
            resp = self._request("GET", "/auth/v1/user", AuthBackendError, token=token)
        except AuthBackendError as e:
            if e.status in (401, 403):
                return None
            raise
        body = self._json(resp, AuthBackendError)
        if not isinstance(body, dict) or not body.get("id"):
            return None
        return AuthUser(id=body["id"], email=body.get("email"))

    # =====================
    # PostgREST
    # =====================

    def count(self, table: str, params: Dict[str, str], error_cls: type = BackendError) -> int:
        resp = self._request(
            "HEAD",
            f"/rest/v1/{table}",
            error_cls,
            headers={"Prefer": "count=exact"},
            params={"select": "id", **params},
        )
        try:
            return parse_content_range_total(resp.headers.get("Content-Range"))
        except ValueError as e:
            raise error_cls(str(e)) from e

    def select(self, table: str, params: Dict[str, Any], error_cls: type = BackendError) -> List[dict]:
        resp = self._request("GET", f"/rest/v1/{table}", error_cls, params={"select": "*", **params})
        return self._json(resp, error_cls)

    def insert(self, table: str, row: dict, error_cls: type = BackendError) -> List[dict]:
        resp = self._request(
            "POST",
            f"/rest/v1/{table}",
            error_cls,
            headers={"Prefer": "return=representation"},
            json=row,
        )
        return self._json(resp, error_cls)

    def update(self, table: str, params: Dict[str, str], values: dict, error_cls: type = BackendError) -> List[dict]:
        resp = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            error_cls,
            headers={"Prefer": "return=representation"},
            params=params,
            json=values,
        )
        return self._json(resp, error_cls)

    def delete(self, table: str, params: Dict[str, str], error_cls: type = BackendError) -> List[dict]:
        resp = self._request(
            "DELETE",
            f"/rest/v1/{table}",
            error_cls,
            headers={"Prefer": "return=representation"},
            params=params,
        )
        return self._json(resp, error_cls)

    def rpc(self, function: str, args: dict, error_cls: type = BackendError) -> Any:
        resp = self._request("POST", f"/rest/v1/rpc/{function}", error_cls, json=args)
        return self._json(resp, error_cls)

    # =====================
    # Storage
    # =====================

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            StorageBackendError,
            headers={"Content-Type": content_type, "x-upsert": "false"},
            data=data,
        )

    def remove_objects(self, bucket: str, paths: List[str]) -> None:
        self._request(
            "DELETE",
            f"/storage/v1/object/{bucket}",
            StorageBackendError,
            json={"prefixes": paths},
        )

    def public_object_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"


class SupabaseAuthProvider:
    """Validates bearer tokens with Supabase Auth."""

    name = "supabase"

    def __init__(self, client: SupabaseClient):
        self.client = client

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    def get_user(self, token: str) -> Optional[AuthUser]:
        return self.client.get_user(token)


class SupabaseUsageStore:
    """Usage ledger in the ``removal_usage`` table."""

    table = "removal_usage"
    reserve_function = "reserve_removal_usage"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def count_usage(self, identity: Identity) -> int:
        return self.client.count(
            self.table,
            {"identity_key": f"eq.{identity.key}", "status": f"eq.{UsageStatus.COMMITTED.value}"},
            CountingStoreUnavailable,
        )

    def count_all_usage(self) -> int:
        return self.client.count(
            self.table,
            {"status": f"eq.{UsageStatus.COMMITTED.value}"},
            CountingStoreUnavailable,
        )

    def reserve(self, identity: Identity, limit: int, ttl_seconds: int) -> Optional[str]:
        result = self.client.rpc(
            self.reserve_function,
            {
                "p_identity_key": identity.key,
                "p_user_id": identity.user_id,
                "p_ip": identity.client_ip,
                "p_limit": limit,
                "p_ttl_seconds": ttl_seconds,
            },
            CountingStoreUnavailable,
        )
        return str(result) if result else None

    def commit_reservation(self, reservation_id: str) -> None:
        rows = self.client.update(
            self.table,
            {"id": f"eq.{reservation_id}", "status": f"eq.{UsageStatus.RESERVED.value}"},
            {"status": UsageStatus.COMMITTED.value, "expires_at": None},
            RecordWriteFailed,
        )
        if not rows:
            raise RecordWriteFailed(f"Reservation {reservation_id} not found")

    def release_reservation(self, reservation_id: str) -> None:
        self.client.delete(
            self.table,
            {"id": f"eq.{reservation_id}", "status": f"eq.{UsageStatus.RESERVED.value}"},
            RecordWriteFailed,
        )

    def extend_reservation(self, reservation_id: str, ttl_seconds: int) -> None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        rows = self.client.update(
            self.table,
            {"id": f"eq.{reservation_id}", "status": f"eq.{UsageStatus.RESERVED.value}"},
            {"expires_at": expires_at.isoformat()},
            RecordWriteFailed,
        )
        if not rows:
            raise RecordWriteFailed(f"Reservation {reservation_id} not found")

    def append_usage(self, identity: Identity) -> None:
        self.client.insert(
            self.table,
            {
                "identity_key": identity.key,
                "user_id": identity.user_id,
                "ip": identity.client_ip,
                "status": UsageStatus.COMMITTED.value,
            },
            RecordWriteFailed,
        )


class SupabaseVisitStore:
    """Visit log in the ``site_visits`` table."""

    table = "site_visits"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def has_visit_since(self, ip: str, since: datetime) -> bool:
        rows = self.client.select(
            self.table,
            {"select": "id", "ip": f"eq.{ip}", "created_at": f"gte.{since.isoformat()}", "limit": "1"},
        )
        return bool(rows)

    def add_visit(self, ip: str, user_id: Optional[str]) -> SiteVisit:
        rows = self.client.insert(self.table, {"user_id": user_id, "ip": ip})
        return SiteVisit(**rows[0])

    def count_visits(self) -> int:
        return self.client.count(self.table, {})


class SupabaseImageHistoryStore:
    """Image history in the ``image_history`` table."""

    table = "image_history"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def list_for_user(self, user_id: str, offset: int, limit: int) -> List[ImageHistoryEntry]:
        rows = self.client.select(
            self.table,
            {
                "user_id": f"eq.{user_id}",
                "order": "created_at.desc",
                "offset": str(offset),
                "limit": str(limit),
            },
        )
        return [ImageHistoryEntry(**row) for row in rows]

    def get(self, entry_id: str) -> Optional[ImageHistoryEntry]:
        rows = self.client.select(self.table, {"id": f"eq.{entry_id}", "limit": "1"})
        return ImageHistoryEntry(**rows[0]) if rows else None

    def add(
        self,
        user_id: Optional[str],
        original_filename: Optional[str],
        processed_url: str,
        storage_path: str,
        file_size: int,
    ) -> ImageHistoryEntry:
        rows = self.client.insert(
            self.table,
            {
                "user_id": user_id,
                "original_filename": original_filename,
                "processed_url": processed_url,
                "storage_path": storage_path,
                "file_size": file_size,
            },
        )
        return ImageHistoryEntry(**rows[0])

    def delete(self, entry_id: str, user_id: str) -> None:
        rows = self.client.delete(self.table, {"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"})
        if not rows:
            raise NotFoundError(f"Image {entry_id} not found")


class SupabaseShortUrlStore:
    """Short URL mappings in the ``short_urls`` table."""

    table = "short_urls"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def add(self, short_id: str, original_url: str) -> ShortUrl:
        rows = self.client.insert(self.table, {"short_id": short_id, "original_url": original_url})
        return ShortUrl(**rows[0])

    def get(self, short_id: str) -> Optional[ShortUrl]:
        rows = self.client.select(self.table, {"short_id": f"eq.{short_id}", "limit": "1"})
        return ShortUrl(**rows[0]) if rows else None


class SupabaseImageStorage:
    """Processed images in a Supabase Storage bucket."""

    name = "supabase"

    def __init__(self, client: SupabaseClient, bucket: str):
        self.client = client
        self.bucket = bucket

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        self.client.upload_object(self.bucket, path, data, content_type)
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return StoredObject(path=path, public_url=self.public_url(path))

    def remove(self, paths: List[str]) -> None:
        self.client.remove_objects(self.bucket, paths)

    def public_url(self, path: str) -> str:
        return self.client.public_object_url(self.bucket, path)
