"""
Quota manager enforcing the free-tier removal allowance.
"""

import logging
import threading
from typing import Callable, Optional, TypeVar

from imglift.backend.base import UsageStore
from imglift.backend.errors import CountingStoreUnavailable, RecordWriteFailed
from imglift.backend.models import Identity

from .models import (
    LIMIT_REACHED,
    QUOTA_UNAVAILABLE,
    CreditStatus,
    FailurePolicy,
    QuotaConfig,
    QuotaDecision,
    QuotaExceeded,
    QuotaUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReservationHeartbeat:
    """
    Keeps a reservation alive while its operation runs.

    Every third of the TTL a daemon thread pushes the expiry forward, so
    a slow operation never loses its slot to the expired-reservation purge.
    """

    def __init__(self, usage_store: UsageStore, reservation_id: str, ttl_seconds: int):
        self.usage_store = usage_store
        self.reservation_id = reservation_id
        self.ttl_seconds = ttl_seconds
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"ReservationHeartbeat-{reservation_id}"
        )

    def _run(self) -> None:
        interval = max(self.ttl_seconds / 3, 0.1)
        while not self._stopped.wait(interval):
            try:
                self.usage_store.extend_reservation(self.reservation_id, self.ttl_seconds)
            except RecordWriteFailed as e:
                logger.warning(f"Failed to extend reservation {self.reservation_id}: {e}")

    def __enter__(self) -> "ReservationHeartbeat":
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._stopped.set()
        self._thread.join()


class QuotaManager:
    """
    Gates metered operations behind a per-identity lifetime allowance.

    Consumption is reserved with one atomic conditional write before the
    operation runs, committed when it succeeds and released when it fails.
    Concurrent requests for one identity can therefore never be permitted
    more than ``free_limit - used`` times.

    Counting-store outages follow ``config.failure_policy``:
    - FAIL_OPEN: permit, then append a usage record best-effort
    - FAIL_CLOSED: deny with QUOTA_UNAVAILABLE
    """

    def __init__(self, config: QuotaConfig, usage_store: UsageStore):
        """
        Initialize QuotaManager.

        Args:
            config: QuotaConfig with the limit and failure policy
            usage_store: Durable usage ledger
        """
        self.config = config
        self.usage_store = usage_store

    def check_and_reserve(self, identity: Identity) -> QuotaDecision:
        """
        Reserve one unit of allowance for *identity* if any is left.

        Returns:
            QuotaDecision; ``allowed`` is False when the limit is reached
            (or the store is down under FAIL_CLOSED).
        """
        try:
            reservation_id = self.usage_store.reserve(
                identity,
                self.config.free_limit,
                self.config.reservation_ttl_seconds,
            )
        except CountingStoreUnavailable as e:
            return self._on_store_unavailable(identity, e)

        if reservation_id is None:
            logger.info(f"Quota denied: identity={identity.key}, limit={self.config.free_limit}")
            return QuotaDecision(
                allowed=False,
                identity=identity,
                code=LIMIT_REACHED,
                message=self.config.limit_message,
            )

        logger.info(f"Quota reserved: identity={identity.key}, reservation={reservation_id}")
        return QuotaDecision(allowed=True, identity=identity, reservation_id=reservation_id)

    def commit(self, decision: QuotaDecision) -> None:
        """
        Record the successful operation behind *decision*.

        A write failure is logged and swallowed: the caller already has
        its result, so usage is under-counted rather than the user blocked.
        """
        if not decision.allowed:
            return
        try:
            if decision.reservation_id:
                self.usage_store.commit_reservation(decision.reservation_id)
            else:
                self.usage_store.append_usage(decision.identity)
            logger.info(f"Recorded removal usage for {decision.identity.key}")
        except RecordWriteFailed as e:
            logger.error(f"Failed to record removal usage for {decision.identity.key}: {e}")

    def release(self, decision: QuotaDecision) -> None:
        """Give back the reservation of an operation that failed."""
        if not decision.reservation_id:
            return
        try:
            self.usage_store.release_reservation(decision.reservation_id)
            logger.info(f"Released reservation {decision.reservation_id} for {decision.identity.key}")
        except RecordWriteFailed as e:
            # The reservation expires on its own after reservation_ttl_seconds
            logger.warning(f"Failed to release reservation {decision.reservation_id}: {e}")

    def run_metered(self, identity: Identity, operation: Callable[[], T]) -> T:
        """
        Run *operation* if *identity* has allowance left, and record it on success.

        Raises:
            QuotaExceeded: The limit is reached; *operation* is not called.
            QuotaUnavailable: The store is down under FAIL_CLOSED.
            Exception: Whatever *operation* raises; no usage is recorded.
        """
        decision = self.check_and_reserve(identity)
        if not decision.allowed:
            if decision.code == QUOTA_UNAVAILABLE:
                raise QuotaUnavailable(decision)
            raise QuotaExceeded(decision)

        try:
            result = self._run_with_heartbeat(decision, operation)
        except BaseException:
            self.release(decision)
            raise

        self.commit(decision)
        return result

    def _run_with_heartbeat(self, decision: QuotaDecision, operation: Callable[[], T]) -> T:
        if not decision.reservation_id:
            return operation()
        with ReservationHeartbeat(
            self.usage_store, decision.reservation_id, self.config.reservation_ttl_seconds
        ):
            return operation()

    def get_credits(self, identity: Identity) -> CreditStatus:
        """
        Credit summary for *identity*.

        Raises:
            CountingStoreUnavailable
        """
        used = self.usage_store.count_usage(identity)
        return CreditStatus(used=used, total=self.config.free_limit)

    def get_total_usage(self) -> int:
        """Committed removals across all identities."""
        return self.usage_store.count_all_usage()

    def _on_store_unavailable(self, identity: Identity, error: Exception) -> QuotaDecision:
        if self.config.failure_policy == FailurePolicy.FAIL_CLOSED:
            logger.error(f"Usage store unavailable, denying {identity.key} (fail_closed): {error}")
            return QuotaDecision(
                allowed=False,
                identity=identity,
                code=QUOTA_UNAVAILABLE,
                message="Usage limits cannot be checked right now. Please try again later.",
            )

        logger.error(f"Usage store unavailable, permitting {identity.key} (fail_open): {error}")
        return QuotaDecision(allowed=True, identity=identity, fail_open=True)
