"""
Service readiness checks.
"""
from datetime import datetime, timezone
from typing import Any, Dict


def _service_status(configured: bool) -> str:
    return "ready" if configured else "not_configured"


class HealthService:
    """Reports whether the upstream API and the storage backend are configured."""

    def __init__(self, removebg_client, image_storage, backend_name: str):
        self.removebg_client = removebg_client
        self.image_storage = image_storage
        self.backend_name = backend_name

    def check(self) -> Dict[str, Any]:
        removebg_ready = bool(self.removebg_client.is_configured)
        storage_ready = bool(self.image_storage.is_configured)
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "status": "healthy" if removebg_ready and storage_ready else "degraded",
            "services": {
                "removebg": {
                    "configured": removebg_ready,
                    "status": _service_status(removebg_ready),
                },
                "storage": {
                    "backend": self.backend_name,
                    "configured": storage_ready,
                    "status": _service_status(storage_ready),
                },
            },
        }

    def is_healthy(self, report: Dict[str, Any]) -> bool:
        return all(service["configured"] for service in report["services"].values())
