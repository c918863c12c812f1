"""
Data models for the free-tier quota system.
"""

from enum import Enum
from dataclasses import dataclass
from typing import Optional

from imglift.backend.models import Identity


LIMIT_REACHED = "LIMIT_REACHED"
QUOTA_UNAVAILABLE = "QUOTA_UNAVAILABLE"

# Minimum slack between the reservation TTL and the metered operation timeout
RESERVATION_TTL_MARGIN_SECONDS = 30


class FailurePolicy(Enum):
    """What to do when the counting store cannot be reached."""
    FAIL_OPEN = "fail_open"      # Permit the operation, log the outage
    FAIL_CLOSED = "fail_closed"  # Deny the operation with 503

    @classmethod
    def from_value(cls, value: str) -> "FailurePolicy":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown quota failure policy '{value}', expected 'fail_open' or 'fail_closed'"
            ) from None


@dataclass
class QuotaConfig:
    """Configuration for quota limits."""
    free_limit: int = 2
    failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN
    reservation_ttl_seconds: int = 120

    def check_operation_timeout(self, timeout_seconds: float) -> None:
        """
        Reject a TTL that a metered operation could outlive.

        Raises:
            ValueError: If the TTL does not exceed *timeout_seconds* by
                RESERVATION_TTL_MARGIN_SECONDS.
        """
        minimum = timeout_seconds + RESERVATION_TTL_MARGIN_SECONDS
        if self.reservation_ttl_seconds <= minimum:
            raise ValueError(
                f"Quota reservation TTL ({self.reservation_ttl_seconds}s) must exceed the "
                f"operation timeout ({timeout_seconds}s) by more than {RESERVATION_TTL_MARGIN_SECONDS}s"
            )

    @property
    def limit_message(self) -> str:
        return (
            f"You have reached the free limit of {self.free_limit} background removals. "
            "Please subscribe to continue."
        )


@dataclass
class QuotaDecision:
    """Result of a quota check-and-reserve."""
    allowed: bool
    identity: Identity
    reservation_id: Optional[str] = None  # Set when a slot was reserved atomically
    code: Optional[str] = None            # "LIMIT_REACHED" / "QUOTA_UNAVAILABLE" when denied
    message: Optional[str] = None         # User-facing message when denied
    fail_open: bool = False               # Permitted because the store was unavailable


@dataclass
class CreditStatus:
    """Free-tier credit summary for one identity."""
    used: int
    total: int

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.used)

    def to_dict(self) -> dict:
        return {"used": self.used, "remaining": self.remaining, "total": self.total}


class QuotaExceeded(Exception):
    """The identity has no free-tier allowance left."""

    status_code = 403

    def __init__(self, decision: QuotaDecision):
        super().__init__(decision.message)
        self.decision = decision
        self.code = decision.code or LIMIT_REACHED

    def to_dict(self) -> dict:
        return {"error": self.decision.message, "code": self.code}


class QuotaUnavailable(QuotaExceeded):
    """The counting store is down and the fail-closed policy is active."""

    status_code = 503
