"""
Admission Queue
===============

Non-blocking gate that caps how many pipelines run at once.

Design Rules:
    - Fixed capacity; a request is admitted iff in_flight < capacity
    - Never buffers: a full gate rejects immediately
    - try_admit/release are the only way to change the count
    - Every admitted id must be released exactly once
    - Exposes counters for the health endpoint
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional, Set


logger = logging.getLogger(__name__)


class AdmissionQueue:
    """
    Fixed-capacity admission gate.

    Attributes:
        capacity: Maximum concurrent requests
        current_load: Requests currently admitted

    Example:
        queue = AdmissionQueue(capacity=1)

        if not queue.try_admit(request_id):
            return reject(retry_after=10)
        try:
            ...
        finally:
            queue.release(request_id, success=ok, duration_ms=elapsed)
    """

    def __init__(self, capacity: int = 1) -> None:
        """
        Initialize admission queue.

        Args:
            capacity: Maximum concurrent requests. Must be >= 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()

        # Counters
        self._processed: int = 0
        self._errors: int = 0
        self._rejected: int = 0
        self._total_time_ms: int = 0
        self._last_processed: Optional[str] = None

    @property
    def capacity(self) -> int:
        """Maximum concurrent requests."""
        return self._capacity

    @property
    def current_load(self) -> int:
        """Number of requests currently admitted."""
        return len(self._in_flight)

    def try_admit(self, request_id: str) -> bool:
        """
        Claim a processing slot.

        Args:
            request_id: Id of the request asking for a slot

        Returns:
            True if admitted (caller must release), False if full.
        """
        with self._lock:
            if request_id in self._in_flight:
                raise ValueError(f"Request {request_id} is already admitted")
            if len(self._in_flight) >= self._capacity:
                self._rejected += 1
                admitted = False
            else:
                self._in_flight.add(request_id)
                admitted = True

        if admitted:
            logger.info(f"[{request_id}] Admitted ({self.current_load}/{self._capacity})")
        else:
            logger.info(f"[{request_id}] Rejected, server busy ({self._capacity}/{self._capacity})")
        return admitted

    def release(
        self,
        request_id: str,
        success: bool = True,
        duration_ms: int = 0,
    ) -> None:
        """
        Return a slot claimed by try_admit.

        Args:
            request_id: Id passed to try_admit
            success: Whether the request produced an image
            duration_ms: Processing time, for the average

        Raises:
            ValueError: If the id is not currently admitted.
        """
        with self._lock:
            if request_id not in self._in_flight:
                raise ValueError(f"Request {request_id} is not admitted")
            self._in_flight.discard(request_id)
            self._processed += 1
            self._total_time_ms += max(0, duration_ms)
            self._last_processed = datetime.now(timezone.utc).isoformat()
            if not success:
                self._errors += 1
            avg = self._total_time_ms // self._processed

        logger.info(
            f"[{request_id}] Released ({'success' if success else 'failure'}) "
            f"- average {avg}ms"
        )

    def stats(self) -> dict:
        """
        Get admission metrics for observability.

        Returns:
            Dict with load, counters, average time and success rate
        """
        with self._lock:
            processed = self._processed
            return {
                "processed": processed,
                "errors": self._errors,
                "rejected": self._rejected,
                "total_time_ms": self._total_time_ms,
                "avg_time_ms": self._total_time_ms // processed if processed else 0,
                "last_processed": self._last_processed,
                "current_load": len(self._in_flight),
                "max_load": self._capacity,
                "success_rate": (
                    round((processed - self._errors) * 100 / processed)
                    if processed else 0
                ),
            }
