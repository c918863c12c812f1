"""
Image sharing services: object upload, short URLs and history rows.
"""
import logging
import secrets
import string
import time
from typing import Optional

from werkzeug.utils import secure_filename

from imglift.backend.base import ImageHistoryStore, ImageStorage, ShortUrlStore
from imglift.backend.errors import BackendError, StorageBackendError
from imglift.removal.models import UploadedImage

from .models import SaveImageResult

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
SHORT_ID_LENGTH = 8
OBJECT_SUFFIX_LENGTH = 7
PERMISSION_DENIED_CODE = "42501"


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def build_object_name(filename: Optional[str], user_id: Optional[str], timestamp_ms: Optional[int] = None) -> str:
    """Object name ``imglift-[user8-]<ms>-<rand7>-<filename>`` (``.png`` when unnamed)."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    user_prefix = f"{user_id[:8]}-" if user_id else ""
    stem = f"imglift-{user_prefix}{timestamp_ms}-{random_base36(OBJECT_SUFFIX_LENGTH)}"
    safe_name = secure_filename(filename or "")
    if safe_name:
        return f"{stem}-{safe_name}"
    return f"{stem}.png"


def is_permission_error(error: BackendError) -> bool:
    message = (error.message or "").lower()
    return error.code == PERMISSION_DENIED_CODE or "permission" in message or "policy" in message


class SharingService:
    """Saves processed images and resolves short links."""

    def __init__(
        self,
        image_storage: ImageStorage,
        short_url_store: ShortUrlStore,
        history_store: ImageHistoryStore,
        site_url: str,
    ):
        self.image_storage = image_storage
        self.short_url_store = short_url_store
        self.history_store = history_store
        self.site_url = site_url.rstrip("/")

    def save_image(self, image: Optional[UploadedImage], user_id: Optional[str]) -> SaveImageResult:
        """Upload *image*, create its short URL and record it in the history."""
        if image is None:
            return SaveImageResult(success=False, error="No image provided", status_code=400)

        if not self.image_storage.is_configured:
            return SaveImageResult(
                success=False,
                error="Storage is not configured. Please check your environment variables.",
                status_code=500,
            )

        object_name = build_object_name(image.filename, user_id)

        try:
            stored = self.image_storage.upload(object_name, image.data, image.content_type or "image/png")
        except StorageBackendError as e:
            logger.error(f"Storage upload error: {e}")
            return SaveImageResult(
                success=False,
                error=f"Storage error: {e.message or 'Failed to upload image to storage'}",
                code="STORAGE_ERROR",
                status_code=500,
            )

        short_id = random_base36(SHORT_ID_LENGTH)
        short_url = f"{self.site_url}/i/{short_id}"
        try:
            self.short_url_store.add(short_id, stored.public_url)
        except BackendError as e:
            logger.warning(f"Failed to create short URL {short_id}: {e}")

        try:
            entry = self.history_store.add(
                user_id=user_id,
                original_filename=image.filename,
                processed_url=stored.public_url,
                storage_path=stored.path,
                file_size=image.size,
            )
        except BackendError as e:
            logger.error(f"History insert error: code={e.code}, message={e.message}")
            if is_permission_error(e):
                warning = (
                    "Image saved to storage, but history not saved. Please set "
                    "SUPABASE_SERVICE_ROLE_KEY to enable history tracking."
                )
                db_error = "RLS policy blocked insert. Service role key required."
            else:
                warning = "Image saved but history not recorded: " + (e.message or "Unknown error")
                db_error = e.message
            return SaveImageResult(
                success=True,
                url=short_url,
                original_url=stored.public_url,
                path=stored.path,
                warning=warning,
                db_error=db_error,
            )

        logger.info(f"Saved image {stored.path} as {short_url}")
        return SaveImageResult(
            success=True,
            url=short_url,
            original_url=stored.public_url,
            path=stored.path,
            history_id=entry.id,
        )

    def resolve_short_url(self, short_id: str) -> str:
        """Target of a short link; the site home when unknown or on error."""
        if not short_id:
            return self.site_url
        try:
            short_url = self.short_url_store.get(short_id)
        except BackendError as e:
            logger.error(f"Short URL lookup error for {short_id}: {e}")
            return self.site_url
        return short_url.original_url if short_url else self.site_url
