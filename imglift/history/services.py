"""
Image history services.
"""
import logging

from imglift.backend.base import ImageHistoryStore, ImageStorage
from imglift.backend.errors import BackendError, NotFoundError, StorageBackendError

from .models import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, DeleteResult, HistoryPage

logger = logging.getLogger(__name__)


def parse_int(value, default: int) -> int:
    """Parse a query parameter leniently, falling back to *default*."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


class HistoryService:
    """Lists and deletes a user's processed images."""

    def __init__(self, history_store: ImageHistoryStore, image_storage: ImageStorage):
        self.history_store = history_store
        self.image_storage = image_storage

    @staticmethod
    def normalize_paging(page, limit) -> tuple[int, int]:
        """Clamp page to >= 1 and limit to [1, MAX_PAGE_SIZE]."""
        page = max(1, parse_int(page, 1))
        limit = min(MAX_PAGE_SIZE, max(1, parse_int(limit, DEFAULT_PAGE_SIZE)))
        return page, limit

    def list_history(self, user_id: str, page=1, limit=DEFAULT_PAGE_SIZE) -> HistoryPage:
        """
        Get one page of the user's history, newest first.

        Raises:
            BackendError: If the history store could not be queried
        """
        page, limit = self.normalize_paging(page, limit)
        offset = (page - 1) * limit
        images = self.history_store.list_for_user(user_id, offset, limit)
        return HistoryPage(page=page, limit=limit, images=images)

    def delete_image(self, user_id: str, image_id: str) -> DeleteResult:
        """Delete an image the user owns, from storage and from history."""
        try:
            entry = self.history_store.get(image_id)
        except BackendError as e:
            logger.error(f"Error loading image {image_id}: {e}")
            entry = None

        if entry is None:
            return DeleteResult(success=False, status_code=404, error="Image not found")

        if entry.user_id != user_id:
            return DeleteResult(success=False, status_code=403, error="Unauthorized")

        try:
            self.image_storage.remove([entry.storage_path])
        except StorageBackendError as e:
            # The history row is still removed
            logger.warning(f"Storage delete error for {entry.storage_path}: {e}")

        try:
            self.history_store.delete(image_id, user_id)
        except NotFoundError:
            return DeleteResult(success=False, status_code=404, error="Image not found")
        except BackendError as e:
            logger.error(f"Failed to delete image {image_id}: {e}")
            return DeleteResult(success=False, status_code=500, error="Failed to delete image")

        logger.info(f"Deleted image {image_id} for user {user_id}")
        return DeleteResult(success=True)
