"""
Quota management module for the free-tier removal allowance.
Tracks authenticated users by user id and anonymous callers by client address.
"""

from .models import FailurePolicy, QuotaConfig, QuotaDecision, QuotaExceeded, QuotaUnavailable, CreditStatus
from .manager import QuotaManager

__all__ = [
    "FailurePolicy",
    "QuotaConfig",
    "QuotaDecision",
    "QuotaExceeded",
    "QuotaUnavailable",
    "CreditStatus",
    "QuotaManager",
]
