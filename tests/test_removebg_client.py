"""
Tests for the remove.bg client and the removal service.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from config_manager import RemoveBgConfig, UploadConfig
from imglift.backend.local import LocalUsageStore
from imglift.backend.models import Identity
from imglift.quota.manager import QuotaManager
from imglift.quota.models import QuotaConfig, QuotaExceeded
from imglift.removal.client import RemoveBgClient, parse_error_body
from imglift.removal.models import (
    ServiceNotConfigured,
    UploadedImage,
    UploadRejected,
    UpstreamOperationFailed,
)
from imglift.removal.services import RemovalService


def make_config(api_key="test-key"):
    return RemoveBgConfig(api_key=api_key, api_url="https://api.remove.bg/v1.0/removebg", timeout_seconds=30)


def make_upload_config():
    return UploadConfig(max_file_size_mb=1, allowed_types=["image/jpeg", "image/png", "image/webp", "image/gif"])


def png_upload(size=10):
    return UploadedImage(data=b"x" * size, content_type="image/png", filename="cat.png")


def ok_response(content=b"PNGDATA"):
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.content = content
    return response


def error_response(status_code, body):
    response = MagicMock()
    response.ok = False
    response.status_code = status_code
    response.text = body
    return response


class TestParseErrorBody:

    def test_removebg_error_list(self):
        body = json.dumps({"errors": [{"title": "Insufficient credits", "code": "insufficient_credits"}]})
        assert parse_error_body(body) == ("Insufficient credits", "insufficient_credits")

    def test_error_object(self):
        assert parse_error_body(json.dumps({"error": {"message": "Bad image"}})) == (
            "Bad image", "REMOVEBG_API_ERROR"
        )

    def test_plain_text(self):
        assert parse_error_body("gateway timeout") == ("gateway timeout", "REMOVEBG_API_ERROR")

    @pytest.mark.parametrize("body", ["123", '["x"]', "null"])
    def test_json_that_is_not_an_object(self, body):
        assert parse_error_body(body) == ("Failed to remove background", "REMOVEBG_API_ERROR")

    def test_empty(self):
        assert parse_error_body("") == ("Failed to remove background", "REMOVEBG_API_ERROR")


class TestRemoveBgClient:

    def test_posts_image_with_api_key(self):
        session = MagicMock()
        session.post.return_value = ok_response()
        client = RemoveBgClient(make_config(), session=session)

        result = client.remove_background(png_upload())

        assert result.image == b"PNGDATA"
        assert result.content_type == "image/png"
        kwargs = session.post.call_args.kwargs
        assert kwargs["headers"] == {"X-Api-Key": "test-key"}
        assert kwargs["data"] == {"size": "auto"}
        assert kwargs["files"]["image_file"][0] == "cat.png"
        assert kwargs["timeout"] == 30

    def test_client_error_passes_status_through(self):
        session = MagicMock()
        session.post.return_value = error_response(
            402, json.dumps({"errors": [{"title": "Insufficient credits", "code": "insufficient_credits"}]})
        )
        client = RemoveBgClient(make_config(), session=session)

        with pytest.raises(UpstreamOperationFailed) as exc_info:
            client.remove_background(png_upload())

        assert exc_info.value.status_code == 402
        assert exc_info.value.to_dict() == {"error": "Insufficient credits", "code": "insufficient_credits"}

    def test_server_error_maps_to_500(self):
        session = MagicMock()
        session.post.return_value = error_response(502, "bad gateway")
        client = RemoveBgClient(make_config(), session=session)

        with pytest.raises(UpstreamOperationFailed) as exc_info:
            client.remove_background(png_upload())

        assert exc_info.value.status_code == 500

    def test_network_error(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("timed out")
        client = RemoveBgClient(make_config(), session=session)

        with pytest.raises(UpstreamOperationFailed) as exc_info:
            client.remove_background(png_upload())

        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "REMOVEBG_API_ERROR"


class TestRemovalService:
    """Admission order and metering."""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.post.return_value = ok_response()
        return session

    @pytest.fixture
    def store(self, tmp_path):
        return LocalUsageStore(tmp_path)

    def make_service(self, session, store, api_key="test-key"):
        client = RemoveBgClient(make_config(api_key), session=session)
        quota_manager = QuotaManager(QuotaConfig(free_limit=2), store)
        return RemovalService(client, quota_manager, make_upload_config())

    @pytest.mark.parametrize("image, code", [
        (None, "MISSING_IMAGE"),
        (UploadedImage(data=b"%PDF", content_type="application/pdf", filename="a.pdf"), "INVALID_FILE_TYPE"),
        (UploadedImage(data=b"x", content_type="image/bmp", filename="a.bmp"), "INVALID_FILE_TYPE"),
        (UploadedImage(data=b"x" * (1024 * 1024 + 1), content_type="image/png", filename="a.png"), "FILE_TOO_LARGE"),
    ])
    def test_rejected_uploads_never_reach_quota(self, session, store, image, code):
        service = self.make_service(session, store)
        resolve_identity = MagicMock()

        with pytest.raises(UploadRejected) as exc_info:
            service.remove_background(image, resolve_identity)

        assert exc_info.value.code == code
        assert exc_info.value.status_code == 400
        resolve_identity.assert_not_called()
        session.post.assert_not_called()
        assert store.usage_table.load() == []

    def test_missing_api_key(self, session, store):
        service = self.make_service(session, store, api_key="")

        with pytest.raises(ServiceNotConfigured):
            service.remove_background(png_upload(), lambda: Identity.for_address("1.2.3.4"))

        assert store.usage_table.load() == []

    def test_success_is_metered(self, session, store):
        service = self.make_service(session, store)
        identity = Identity.for_address("1.2.3.4")

        result = service.remove_background(png_upload(), lambda: identity)

        assert result.image == b"PNGDATA"
        assert store.count_usage(identity) == 1

    def test_upstream_failure_is_not_metered(self, session, store):
        session.post.return_value = error_response(400, json.dumps({"errors": [{"title": "Bad"}]}))
        service = self.make_service(session, store)
        identity = Identity.for_address("1.2.3.4")

        with pytest.raises(UpstreamOperationFailed):
            service.remove_background(png_upload(), lambda: identity)

        assert store.count_usage(identity) == 0
        assert store.usage_table.load() == []

    def test_denied_after_limit(self, session, store):
        service = self.make_service(session, store)
        identity = Identity.for_user("user-1")

        service.remove_background(png_upload(), lambda: identity)
        service.remove_background(png_upload(), lambda: identity)
        with pytest.raises(QuotaExceeded):
            service.remove_background(png_upload(), lambda: identity)

        assert session.post.call_count == 2
