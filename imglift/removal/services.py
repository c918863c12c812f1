"""
Background removal service: admission checks, quota gate and the remove.bg call.
"""

import logging
from typing import Callable, Optional

from config_manager import UploadConfig
from imglift.backend.models import Identity
from imglift.quota.manager import QuotaManager

from .client import RemoveBgClient
from .models import RemovalResult, ServiceNotConfigured, UploadedImage, UploadRejected

logger = logging.getLogger(__name__)


class RemovalService:
    """Runs one metered background removal."""

    def __init__(self, client: RemoveBgClient, quota_manager: QuotaManager, upload_config: UploadConfig):
        self.client = client
        self.quota_manager = quota_manager
        self.upload_config = upload_config

    def validate_upload(self, image: Optional[UploadedImage]) -> UploadedImage:
        """Reject uploads that must never consume quota.

        Raises:
            UploadRejected
        """
        if image is None:
            raise UploadRejected("No image provided", "MISSING_IMAGE")

        content_type = (image.content_type or "").lower()
        if not content_type.startswith("image/") or content_type not in self.upload_config.allowed_types:
            raise UploadRejected(
                "Invalid file type. Only JPEG, PNG, WebP, and GIF images are allowed",
                "INVALID_FILE_TYPE",
            )

        if image.size > self.upload_config.max_file_size_bytes:
            raise UploadRejected(
                f"Image too large. Maximum size is {self.upload_config.max_file_size_mb}MB",
                "FILE_TOO_LARGE",
            )
        return image

    def remove_background(
        self,
        image: Optional[UploadedImage],
        resolve_identity: Callable[[], Identity],
    ) -> RemovalResult:
        """
        Validate, gate and process one upload.

        Identity is resolved only after the upload passed admission checks.

        Raises:
            UploadRejected, ServiceNotConfigured, QuotaExceeded,
            QuotaUnavailable, UpstreamOperationFailed
        """
        image = self.validate_upload(image)

        if not self.client.is_configured:
            logger.error("REMOVEBG_API_KEY is not configured")
            raise ServiceNotConfigured()

        identity = resolve_identity()
        result = self.quota_manager.run_metered(identity, lambda: self.client.remove_background(image))

        logger.info(
            f"Background removal successful: fileSize={image.size}, duration={result.duration_ms}ms, "
            f"identity={identity.key}"
        )
        return result
