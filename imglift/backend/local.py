"""
Local JSON-file backend.

Each table is a JSON file under the data directory. Writes go through a lock
shared by every store that points at the same file, so the conditional
reservation is atomic for all request threads of one process. Run a single
worker process with this backend; multi-process deployments should use the
Supabase backend.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, List, Optional

from .errors import (
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
    UsageRecord,
    UsageStatus,
)

logger = logging.getLogger(__name__)

_file_locks: Dict[Path, Lock] = {}
_registry_lock = Lock()


def _lock_for(path: Path) -> Lock:
    """Return the process-wide lock guarding *path*."""
    key = path.resolve()
    with _registry_lock:
        if key not in _file_locks:
            _file_locks[key] = Lock()
        return _file_locks[key]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


class JsonTable:
    """A list of JSON rows persisted in one file."""

    def __init__(self, path: Path, error_cls: type = BackendError):
        self.path = path
        self.error_cls = error_cls
        self.lock = _lock_for(path)

    def load(self) -> List[dict]:
        """Load all rows. A missing file is an empty table."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise self.error_cls(f"Error loading {self.path.name}: {e}") from e
        return data.get("rows", [])

    def save(self, rows: List[dict]) -> None:
        """Replace all rows atomically on disk."""
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump({"rows": rows}, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise self.error_cls(f"Error saving {self.path.name}: {e}") from e

    def mutate(self, fn: Callable[[List[dict]], object]) -> object:
        """Load, apply *fn* and save while holding the table lock.

        *fn* edits the row list in place and returns the call result.
        """
        with self.lock:
            rows = self.load()
            result = fn(rows)
            self.save(rows)
            return result


class LocalAuthProvider:
    """Resolves bearer tokens from a static token table (development only)."""

    name = "local"

    def __init__(self, tokens: Dict[str, str]):
        self.tokens = dict(tokens)

    @property
    def is_configured(self) -> bool:
        return True

    def get_user(self, token: str) -> Optional[AuthUser]:
        user_id = self.tokens.get(token)
        if not user_id:
            return None
        return AuthUser(id=user_id)


class LocalUsageStore:
    """Usage ledger stored in ``removal_usage.json``."""

    def __init__(self, data_dir: Path):
        self.usage_table = JsonTable(data_dir / "removal_usage.json", CountingStoreUnavailable)

    @staticmethod
    def _is_live(row: dict, now: datetime) -> bool:
        if row.get("status") == UsageStatus.COMMITTED.value:
            return True
        expires_at = row.get("expires_at")
        return bool(expires_at) and _parse_ts(expires_at) > now

    def count_usage(self, identity: Identity) -> int:
        with self.usage_table.lock:
            rows = self.usage_table.load()
        return sum(
            1 for row in rows
            if row.get("identity_key") == identity.key
            and row.get("status") == UsageStatus.COMMITTED.value
        )

    def count_all_usage(self) -> int:
        with self.usage_table.lock:
            rows = self.usage_table.load()
        return sum(1 for row in rows if row.get("status") == UsageStatus.COMMITTED.value)

    def reserve(self, identity: Identity, limit: int, ttl_seconds: int) -> Optional[str]:
        now = _now()

        def _reserve(rows: List[dict]) -> Optional[str]:
            # Expired reservations belong to requests that never finished
            rows[:] = [row for row in rows if self._is_live(row, now)]
            used = sum(1 for row in rows if row.get("identity_key") == identity.key)
            if used >= limit:
                return None
            record = UsageRecord(
                id=str(uuid.uuid4()),
                identity_key=identity.key,
                user_id=identity.user_id,
                ip=identity.client_ip,
                status=UsageStatus.RESERVED,
                created_at=now.isoformat(),
                expires_at=(now + timedelta(seconds=ttl_seconds)).isoformat(),
            )
            rows.append(record.model_dump(mode="json"))
            return record.id

        return self.usage_table.mutate(_reserve)

    def commit_reservation(self, reservation_id: str) -> None:
        def _commit(rows: List[dict]) -> None:
            for row in rows:
                if row.get("id") == reservation_id:
                    row["status"] = UsageStatus.COMMITTED.value
                    row["expires_at"] = None
                    return
            raise RecordWriteFailed(f"Reservation {reservation_id} not found")

        try:
            self.usage_table.mutate(_commit)
        except CountingStoreUnavailable as e:
            raise RecordWriteFailed(str(e)) from e

    def release_reservation(self, reservation_id: str) -> None:
        def _release(rows: List[dict]) -> None:
            rows[:] = [
                row for row in rows
                if not (row.get("id") == reservation_id
                        and row.get("status") == UsageStatus.RESERVED.value)
            ]

        try:
            self.usage_table.mutate(_release)
        except CountingStoreUnavailable as e:
            raise RecordWriteFailed(str(e)) from e

    def extend_reservation(self, reservation_id: str, ttl_seconds: int) -> None:
        def _extend(rows: List[dict]) -> None:
            for row in rows:
                if row.get("id") == reservation_id and row.get("status") == UsageStatus.RESERVED.value:
                    row["expires_at"] = (_now() + timedelta(seconds=ttl_seconds)).isoformat()
                    return
            raise RecordWriteFailed(f"Reservation {reservation_id} not found")

        try:
            self.usage_table.mutate(_extend)
        except CountingStoreUnavailable as e:
            raise RecordWriteFailed(str(e)) from e

    def append_usage(self, identity: Identity) -> None:
        record = UsageRecord(
            id=str(uuid.uuid4()),
            identity_key=identity.key,
            user_id=identity.user_id,
            ip=identity.client_ip,
            status=UsageStatus.COMMITTED,
            created_at=_now().isoformat(),
        )
        try:
            self.usage_table.mutate(lambda rows: rows.append(record.model_dump(mode="json")))
        except CountingStoreUnavailable as e:
            raise RecordWriteFailed(str(e)) from e


class LocalVisitStore:
    """Visit log stored in ``site_visits.json``."""

    def __init__(self, data_dir: Path):
        self.table = JsonTable(data_dir / "site_visits.json")

    def has_visit_since(self, ip: str, since: datetime) -> bool:
        with self.table.lock:
            rows = self.table.load()
        return any(
            row.get("ip") == ip and _parse_ts(row["created_at"]) >= since
            for row in rows
        )

    def add_visit(self, ip: str, user_id: Optional[str]) -> SiteVisit:
        visit = SiteVisit(id=str(uuid.uuid4()), user_id=user_id, ip=ip, created_at=_now().isoformat())
        self.table.mutate(lambda rows: rows.append(visit.model_dump()))
        return visit

    def count_visits(self) -> int:
        with self.table.lock:
            return len(self.table.load())


class LocalImageHistoryStore:
    """Image history stored in ``image_history.json``."""

    def __init__(self, data_dir: Path):
        self.table = JsonTable(data_dir / "image_history.json")

    def list_for_user(self, user_id: str, offset: int, limit: int) -> List[ImageHistoryEntry]:
        with self.table.lock:
            rows = self.table.load()
        owned = [row for row in rows if row.get("user_id") == user_id]
        owned.sort(key=lambda row: row["created_at"], reverse=True)
        return [ImageHistoryEntry(**row) for row in owned[offset:offset + limit]]

    def get(self, entry_id: str) -> Optional[ImageHistoryEntry]:
        with self.table.lock:
            rows = self.table.load()
        for row in rows:
            if row.get("id") == entry_id:
                return ImageHistoryEntry(**row)
        return None

    def add(
        self,
        user_id: Optional[str],
        original_filename: Optional[str],
        processed_url: str,
        storage_path: str,
        file_size: int,
    ) -> ImageHistoryEntry:
        entry = ImageHistoryEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            original_filename=original_filename,
            processed_url=processed_url,
            storage_path=storage_path,
            file_size=file_size,
            created_at=_now().isoformat(),
        )
        self.table.mutate(lambda rows: rows.append(entry.model_dump()))
        return entry

    def delete(self, entry_id: str, user_id: str) -> None:
        def _delete(rows: List[dict]) -> None:
            remaining = [
                row for row in rows
                if not (row.get("id") == entry_id and row.get("user_id") == user_id)
            ]
            if len(remaining) == len(rows):
                raise NotFoundError(f"Image {entry_id} not found")
            rows[:] = remaining

        self.table.mutate(_delete)


class LocalShortUrlStore:
    """Short URL mappings stored in ``short_urls.json``."""

    def __init__(self, data_dir: Path):
        self.table = JsonTable(data_dir / "short_urls.json")

    def add(self, short_id: str, original_url: str) -> ShortUrl:
        short_url = ShortUrl(short_id=short_id, original_url=original_url, created_at=_now().isoformat())
        self.table.mutate(lambda rows: rows.append(short_url.model_dump()))
        return short_url

    def get(self, short_id: str) -> Optional[ShortUrl]:
        with self.table.lock:
            rows = self.table.load()
        for row in rows:
            if row.get("short_id") == short_id:
                return ShortUrl(**row)
        return None


class LocalImageStorage:
    """Stores objects on disk and serves them under ``/files/``."""

    name = "local"

    def __init__(self, root: Path, base_url: str):
        self.root = root
        self.base_url = base_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return True

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageBackendError(f"Invalid object path: {path}", code="INVALID_PATH")
        return target

    def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        target = self._resolve(path)
        if target.exists():
            raise StorageBackendError("The resource already exists", code="DUPLICATE")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageBackendError(f"Failed to write {path}: {e}") from e
        logger.info(f"Stored {len(data)} bytes at {path} ({content_type})")
        return StoredObject(path=path, public_url=self.public_url(path))

    def remove(self, paths: List[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageBackendError(f"Failed to remove {path}: {e}") from e

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/files/{path}"
