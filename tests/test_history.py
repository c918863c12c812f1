"""
Tests for the image history subsystem.
"""

import json
from unittest.mock import MagicMock

import pytest

from config_manager import ConfigManager
from imglift.backend.errors import BackendError, StorageBackendError
from imglift.backend.local import LocalImageHistoryStore
from imglift.history.services import HistoryService, parse_int
from imglift.main import create_app

ENV_VARS = [
    "APP_HOST", "APP_PORT", "APP_DEBUG", "SITE_URL",
    "REMOVEBG_API_KEY", "REMOVEBG_API_URL", "REMOVEBG_TIMEOUT",
    "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_TIMEOUT",
    "FREE_REMOVAL_LIMIT", "QUOTA_FAILURE_POLICY", "QUOTA_RESERVATION_TTL",
    "MAX_UPLOAD_SIZE_MB", "STORAGE_BACKEND", "DATA_DIR", "LOCAL_AUTH_TOKENS",
]

USER_1 = {"Authorization": "Bearer token-1"}
USER_2 = {"Authorization": "Bearer token-2"}


def build_app(tmp_path, monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config = {
        "app": {"site_url": "http://localhost:3000"},
        "removebg": {"api_key": "test-key"},
        "storage": {
            "backend": "local",
            "data_dir": str(tmp_path / "data"),
            "local_auth_tokens": {"token-1": "user-1", "token-2": "user-2"},
        },
    }
    config_file = tmp_path / "imglift_config.json"
    config_file.write_text(json.dumps(config), encoding="utf-8")
    return create_app(ConfigManager(str(config_file)), base_dir=tmp_path, session=MagicMock())


def add_entry(store, user_id, name="a.png"):
    return store.add(
        user_id=user_id,
        original_filename=name,
        processed_url=f"http://localhost:3000/files/{name}",
        storage_path=name,
        file_size=4,
    )


class TestParsing:

    def test_parse_int(self):
        assert parse_int("3", 1) == 3
        assert parse_int(" 7 ", 1) == 7
        assert parse_int("abc", 12) == 12
        assert parse_int(None, 12) == 12

    @pytest.mark.parametrize("page, limit, expected", [
        (None, None, (1, 12)),
        ("0", "0", (1, 1)),
        ("-5", "500", (1, 50)),
        ("3", "20", (3, 20)),
        ("x", "y", (1, 12)),
    ])
    def test_normalize_paging(self, page, limit, expected):
        assert HistoryService.normalize_paging(page, limit) == expected


class TestHistoryService:

    @pytest.fixture
    def store(self, tmp_path):
        return LocalImageHistoryStore(tmp_path)

    def test_has_more_when_page_is_full(self, store):
        for i in range(3):
            add_entry(store, "user-1", f"{i}.png")
        service = HistoryService(store, MagicMock())

        first = service.list_history("user-1", page=1, limit=2)
        second = service.list_history("user-1", page=2, limit=2)

        assert first.has_more is True
        assert len(second.images) == 1
        assert second.has_more is False

    def test_storage_failure_still_deletes_row(self, store):
        entry = add_entry(store, "user-1")
        storage = MagicMock()
        storage.remove.side_effect = StorageBackendError("bucket gone")
        service = HistoryService(store, storage)

        result = service.delete_image("user-1", entry.id)

        assert result.success is True
        assert store.get(entry.id) is None

    def test_row_delete_failure(self):
        store = MagicMock()
        store.get.return_value = MagicMock(user_id="user-1", storage_path="a.png")
        store.delete.side_effect = BackendError("db down")
        service = HistoryService(store, MagicMock())

        result = service.delete_image("user-1", "h1")

        assert result.status_code == 500
        assert result.success is False


class TestHistoryRoutes:

    @pytest.fixture
    def app(self, tmp_path, monkeypatch):
        return build_app(tmp_path, monkeypatch)

    @pytest.fixture
    def client(self, app):
        return app.test_client()

    @pytest.fixture
    def store(self, app):
        return app.extensions["imglift"]["backend"]["history_store"]

    def test_list_requires_auth(self, client):
        response = client.get("/api/history")

        assert response.status_code == 401
        assert response.get_json()["code"] == "UNAUTHORIZED"

    def test_list_own_images(self, client, store):
        add_entry(store, "user-1", "mine.png")
        add_entry(store, "user-2", "theirs.png")

        response = client.get("/api/history?page=1&limit=12", headers=USER_1)

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert [image["original_filename"] for image in body["images"]] == ["mine.png"]
        assert body["pagination"] == {"page": 1, "limit": 12, "hasMore": False}

    def test_limit_is_clamped(self, client):
        body = client.get("/api/history?limit=1000", headers=USER_1).get_json()

        assert body["pagination"]["limit"] == 50

    def test_store_error(self, client, tmp_path):
        (tmp_path / "data" / "image_history.json").write_text("corrupt", encoding="utf-8")

        response = client.get("/api/history", headers=USER_1)

        assert response.status_code == 500
        assert response.get_json()["code"] == "DATABASE_ERROR"

    def test_delete_requires_id(self, client):
        response = client.delete("/api/history", headers=USER_1)

        assert response.status_code == 400

    def test_delete_requires_auth(self, client):
        response = client.delete("/api/history?id=abc")

        assert response.status_code == 401

    def test_delete_unknown(self, client):
        response = client.delete("/api/history?id=missing", headers=USER_1)

        assert response.status_code == 404

    def test_delete_someone_elses_image(self, client, store):
        entry = add_entry(store, "user-1")

        response = client.delete(f"/api/history?id={entry.id}", headers=USER_2)

        assert response.status_code == 403
        assert store.get(entry.id) is not None

    def test_delete_own_image_removes_object(self, app, client, store):
        storage = app.extensions["imglift"]["backend"]["image_storage"]
        stored = storage.upload("owned.png", b"png", "image/png")
        entry = store.add(
            user_id="user-1",
            original_filename="owned.png",
            processed_url=stored.public_url,
            storage_path=stored.path,
            file_size=3,
        )

        response = client.delete(f"/api/history?id={entry.id}", headers=USER_1)

        assert response.status_code == 200
        assert response.get_json()["success"] is True
        assert store.get(entry.id) is None
        assert not (storage.root / "owned.png").exists()
