"""
remove.bg API client for background removal.
"""

import json
import logging
import time
from typing import Optional

import requests

from config_manager import RemoveBgConfig

from .models import RemovalResult, UploadedImage, UpstreamOperationFailed

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to remove background"
DEFAULT_ERROR_CODE = "REMOVEBG_API_ERROR"


def parse_error_body(text: str) -> tuple[str, str]:
    """
    Extract a message and code from a remove.bg error body.

    remove.bg answers ``{"errors": [{"title": ..., "code": ...}]}``; other
    shapes (``{"error": {"message": ...}}``, ``{"error": "..."}``, plain
    text) are accepted too.

    Returns:
        Tuple of (message, code)
    """
    try:
        body = json.loads(text)
    except ValueError:
        return text or DEFAULT_ERROR_MESSAGE, DEFAULT_ERROR_CODE

    if not isinstance(body, dict):
        return DEFAULT_ERROR_MESSAGE, DEFAULT_ERROR_CODE

    first = None
    errors = body.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]

    error = body.get("error")
    message = (
        (first or {}).get("title")
        or (error.get("message") if isinstance(error, dict) else None)
        or (error if isinstance(error, str) else None)
        or DEFAULT_ERROR_MESSAGE
    )
    code = (first or {}).get("code") or DEFAULT_ERROR_CODE
    return str(message), str(code)


class RemoveBgClient:
    """Client for removing backgrounds from images via the remove.bg API."""

    def __init__(self, config: RemoveBgConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def remove_background(self, image: UploadedImage) -> RemovalResult:
        """
        Remove the background from an image.

        One request, bounded by ``timeout_seconds``, never retried.

        Returns:
            RemovalResult with PNG bytes

        Raises:
            UpstreamOperationFailed: On a non-2xx answer or a network error
        """
        start = time.monotonic()
        try:
            response = self.session.post(
                self.config.api_url,
                files={
                    "image_file": (
                        image.filename or "image",
                        image.data,
                        image.content_type,
                    )
                },
                data={"size": "auto"},
                headers={"X-Api-Key": self.config.api_key},
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error(f"remove.bg request failed after {duration_ms}ms: {e}")
            raise UpstreamOperationFailed(DEFAULT_ERROR_MESSAGE, DEFAULT_ERROR_CODE) from e

        duration_ms = int((time.monotonic() - start) * 1000)

        if not response.ok:
            message, code = parse_error_body(response.text)
            logger.error(
                f"Remove.bg API error: status={response.status_code}, error={message}, duration={duration_ms}ms"
            )
            raise UpstreamOperationFailed(message, code, upstream_status=response.status_code)

        return RemovalResult(image=response.content, duration_ms=duration_ms)
