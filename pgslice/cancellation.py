"""Cancellation and deadlines for a running extraction."""

import threading
import time

from pgslice.exceptions import ExtractionCancelledError


class CancelToken:
    """
    Signal shared between a caller and a running extraction.

    The caller may call ``cancel()`` from any thread; a token created with a
    timeout also expires on its own. The traversal calls ``check()`` before
    every fetch and backends use ``remaining()`` to bound each statement.

    Example:
        >>> token = CancelToken(timeout=30)
        >>> extractor.extract("vehicle", "id", vehicle_id, cancel=token)
    """

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """
        Raise if the extraction should stop.

        Raises:
            ExtractionCancelledError: If cancelled or past the deadline
        """
        if self.cancelled:
            raise ExtractionCancelledError("cancelled by caller")
        if self.expired:
            raise ExtractionCancelledError("timeout exceeded")
