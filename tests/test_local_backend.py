"""
Tests for the local JSON-file backend.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from imglift.backend.errors import (
    CountingStoreUnavailable,
    NotFoundError,
    RecordWriteFailed,
    StorageBackendError,
)
from imglift.backend.local import (
    JsonTable,
    LocalAuthProvider,
    LocalImageHistoryStore,
    LocalImageStorage,
    LocalShortUrlStore,
    LocalUsageStore,
    LocalVisitStore,
)
from imglift.backend.models import Identity


class TestJsonTable:

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonTable(tmp_path / "rows.json").load() == []

    def test_mutate_persists_rows(self, tmp_path):
        table = JsonTable(tmp_path / "rows.json")

        result = table.mutate(lambda rows: rows.append({"id": "a"}) or len(rows))

        assert result == 1
        data = json.loads((tmp_path / "rows.json").read_text(encoding="utf-8"))
        assert data == {"rows": [{"id": "a"}]}

    def test_corrupt_file_raises_configured_error(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text("{oops", encoding="utf-8")

        with pytest.raises(CountingStoreUnavailable):
            JsonTable(path, CountingStoreUnavailable).load()

    def test_tables_on_same_file_share_lock(self, tmp_path):
        assert JsonTable(tmp_path / "rows.json").lock is JsonTable(tmp_path / "rows.json").lock


class TestLocalAuthProvider:

    def test_known_and_unknown_tokens(self):
        provider = LocalAuthProvider({"secret": "user-1"})

        assert provider.get_user("secret").id == "user-1"
        assert provider.get_user("wrong") is None


class TestLocalUsageStore:
    """Reservation protocol of the usage ledger."""

    def test_reserve_until_limit(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        first = store.reserve(identity, limit=2, ttl_seconds=60)
        second = store.reserve(identity, limit=2, ttl_seconds=60)
        third = store.reserve(identity, limit=2, ttl_seconds=60)

        assert first and second and first != second
        assert third is None

    def test_reservations_are_not_counted_as_usage(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_user("user-1")

        reservation_id = store.reserve(identity, limit=2, ttl_seconds=60)
        assert store.count_usage(identity) == 0

        store.commit_reservation(reservation_id)
        assert store.count_usage(identity) == 1
        assert store.count_all_usage() == 1

    def test_release_frees_the_slot(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        reservation_id = store.reserve(identity, limit=1, ttl_seconds=60)
        store.release_reservation(reservation_id)

        assert store.reserve(identity, limit=1, ttl_seconds=60) is not None

    def test_release_does_not_remove_committed_rows(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        reservation_id = store.reserve(identity, limit=2, ttl_seconds=60)
        store.commit_reservation(reservation_id)
        store.release_reservation(reservation_id)

        assert store.count_usage(identity) == 1

    def test_expired_reservations_are_purged(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        assert store.reserve(identity, limit=1, ttl_seconds=0) is not None
        assert store.reserve(identity, limit=1, ttl_seconds=60) is not None
        assert len(store.usage_table.load()) == 1

    def test_extended_reservation_is_not_purged(self, tmp_path):
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        reservation_id = store.reserve(identity, limit=1, ttl_seconds=0)
        store.extend_reservation(reservation_id, 60)

        assert store.reserve(identity, limit=1, ttl_seconds=60) is None

    def test_extend_unknown_reservation_fails(self, tmp_path):
        store = LocalUsageStore(tmp_path)

        with pytest.raises(RecordWriteFailed):
            store.extend_reservation("missing", 60)

    def test_commit_unknown_reservation_fails(self, tmp_path):
        store = LocalUsageStore(tmp_path)

        with pytest.raises(RecordWriteFailed):
            store.commit_reservation("missing")

    def test_rows_carry_identity_details(self, tmp_path):
        store = LocalUsageStore(tmp_path)

        store.append_usage(Identity.for_user("user-1", client_ip="1.2.3.4"))

        row = store.usage_table.load()[0]
        assert row["identity_key"] == "user:user-1"
        assert row["user_id"] == "user-1"
        assert row["ip"] == "1.2.3.4"
        assert row["status"] == "committed"

    def test_corrupt_ledger_is_unavailable(self, tmp_path):
        (tmp_path / "removal_usage.json").write_text("not json", encoding="utf-8")
        store = LocalUsageStore(tmp_path)
        identity = Identity.for_address("1.2.3.4")

        with pytest.raises(CountingStoreUnavailable):
            store.reserve(identity, limit=2, ttl_seconds=60)
        with pytest.raises(RecordWriteFailed):
            store.append_usage(identity)


class TestLocalVisitStore:

    def test_visit_since(self, tmp_path):
        store = LocalVisitStore(tmp_path)
        store.add_visit("1.2.3.4", None)
        now = datetime.now(timezone.utc)

        assert store.has_visit_since("1.2.3.4", now - timedelta(minutes=1)) is True
        assert store.has_visit_since("1.2.3.4", now + timedelta(minutes=1)) is False
        assert store.has_visit_since("5.6.7.8", now - timedelta(minutes=1)) is False
        assert store.count_visits() == 1


class TestLocalImageHistoryStore:

    def _add(self, store, user_id, name):
        return store.add(
            user_id=user_id,
            original_filename=name,
            processed_url=f"http://x/{name}",
            storage_path=name,
            file_size=10,
        )

    def test_list_is_owned_and_newest_first(self, tmp_path, monkeypatch):
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        ticks = iter(start + timedelta(seconds=i) for i in range(10))
        monkeypatch.setattr("imglift.backend.local._now", lambda: next(ticks))
        store = LocalImageHistoryStore(tmp_path)
        first = self._add(store, "user-1", "a.png")
        second = self._add(store, "user-1", "b.png")
        self._add(store, "user-2", "c.png")

        entries = store.list_for_user("user-1", offset=0, limit=10)

        assert [entry.id for entry in entries] == [second.id, first.id]
        assert store.list_for_user("user-1", offset=1, limit=10)[0].id == first.id

    def test_delete_requires_owner(self, tmp_path):
        store = LocalImageHistoryStore(tmp_path)
        entry = self._add(store, "user-1", "a.png")

        with pytest.raises(NotFoundError):
            store.delete(entry.id, "user-2")

        store.delete(entry.id, "user-1")
        assert store.get(entry.id) is None


class TestLocalShortUrlStore:

    def test_add_and_get(self, tmp_path):
        store = LocalShortUrlStore(tmp_path)
        store.add("abc12345", "http://x/a.png")

        assert store.get("abc12345").original_url == "http://x/a.png"
        assert store.get("zzzzzzzz") is None


class TestLocalImageStorage:

    def test_upload_and_remove(self, tmp_path):
        storage = LocalImageStorage(tmp_path / "objects", "http://localhost:3000/")

        stored = storage.upload("a.png", b"png-bytes", "image/png")

        assert stored.public_url == "http://localhost:3000/files/a.png"
        assert (tmp_path / "objects" / "a.png").read_bytes() == b"png-bytes"

        storage.remove(["a.png", "never-existed.png"])
        assert not (tmp_path / "objects" / "a.png").exists()

    def test_duplicate_upload_is_rejected(self, tmp_path):
        storage = LocalImageStorage(tmp_path / "objects", "http://localhost:3000")
        storage.upload("a.png", b"1", "image/png")

        with pytest.raises(StorageBackendError) as exc_info:
            storage.upload("a.png", b"2", "image/png")

        assert exc_info.value.code == "DUPLICATE"

    def test_path_traversal_is_rejected(self, tmp_path):
        storage = LocalImageStorage(tmp_path / "objects", "http://localhost:3000")

        with pytest.raises(StorageBackendError):
            storage.upload("../escape.png", b"1", "image/png")
