"""Domain Guardrails - Mirror Failure Monitoring.

The secondary document mirror is written best-effort after the primary commit.
Its failures never reach the client, so this module keeps them visible to
operators: every mirror write outcome is recorded, and a sliding-window failure
rate marks the mirror as degraded when it crosses a threshold.

Architecture:
    - Pure domain logic with no infrastructure dependencies
    - Works with the Result type returned by MirrorPort adapters
    - Thread-safe, since request handlers run concurrently
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Optional

from wardtrack.domain.ports import Result

logger = logging.getLogger(__name__)


@dataclass
class MirrorMonitorConfig:
    """Configuration for MirrorMonitor behavior.

    Attributes:
        failure_threshold_percent: Failure percentage in the window that marks the mirror degraded (0-100)
        window_size: Number of recent mirror writes evaluated
        min_writes_before_check: Minimum writes recorded before the threshold applies
    """
    failure_threshold_percent: float = 50.0
    window_size: int = 100
    min_writes_before_check: int = 5


class MirrorMonitor:
    """Sliding-window monitor over mirror write outcomes.

    Unlike a circuit breaker it never blocks writes: the record service keeps
    attempting mirror propagation, and the monitor only reports.

    Example Usage:
        ```python
        monitor = MirrorMonitor()
        result = mirror.create_document("patients", mrn, data)
        monitor.record_result(result, operation="create_patient", mrn=mrn)

        if monitor.is_degraded():
            alert_operators(monitor.get_statistics())
        ```
    """

    def __init__(self, config: Optional[MirrorMonitorConfig] = None):
        """Initialize MirrorMonitor.

        Parameters:
            config: Monitor configuration (uses defaults if None)
        """
        self.config = config or MirrorMonitorConfig()
        self._results: deque[bool] = deque(maxlen=self.config.window_size)
        self._lock = Lock()
        self._is_degraded = False
        self._total_writes = 0
        self._total_failures = 0
        self._last_error: Optional[str] = None
        self._last_failure_at: Optional[datetime] = None

    def record_result(self, result: Result, operation: str, mrn: Optional[str] = None) -> None:
        """Record the outcome of one mirror write.

        Parameters:
            result: Result returned by the mirror adapter
            operation: Record-service operation that triggered the write
            mrn: Patient MRN the write concerned
        """
        with self._lock:
            self._total_writes += 1
            self._results.append(result.is_success())

            if result.is_failure():
                self._total_failures += 1
                self._last_error = f"{operation} ({mrn}): {result.error_type}: {result.error}"
                self._last_failure_at = datetime.now(timezone.utc)

            if self._total_writes >= self.config.min_writes_before_check:
                self._check_threshold()

    def _check_threshold(self) -> None:
        """Flip the degraded flag when the window failure rate crosses the threshold."""
        if not self._results:
            return

        failures_in_window = sum(1 for ok in self._results if not ok)
        failure_rate = (failures_in_window / len(self._results)) * 100.0

        if failure_rate >= self.config.failure_threshold_percent:
            if not self._is_degraded:
                self._is_degraded = True
                logger.error(
                    f"Mirror DEGRADED: failure rate {failure_rate:.1f}% "
                    f"exceeds threshold {self.config.failure_threshold_percent}% "
                    f"(failures: {failures_in_window}/{len(self._results)} in window, "
                    f"total: {self._total_failures}/{self._total_writes})"
                )
        elif self._is_degraded:
            self._is_degraded = False
            logger.info(
                f"Mirror RECOVERED: failure rate {failure_rate:.1f}% "
                f"is below threshold {self.config.failure_threshold_percent}%"
            )

    def is_degraded(self) -> bool:
        """Check if the mirror is currently considered degraded."""
        with self._lock:
            return self._is_degraded

    def get_statistics(self) -> dict:
        """Get current statistics about mirror writes.

        Returns:
            dict: Statistics including:
                - is_degraded: Whether the window failure rate is over threshold
                - total_writes: Mirror writes attempted since start
                - total_failures: Mirror writes that failed
                - failure_rate: Failure percentage in the current window
                - last_error: Description of the most recent failure
                - last_failure_at: Timestamp of the most recent failure
        """
        with self._lock:
            failures_in_window = sum(1 for ok in self._results if not ok)
            total_in_window = len(self._results)
            failure_rate = (failures_in_window / total_in_window * 100.0) if total_in_window > 0 else 0.0

            return {
                'is_degraded': self._is_degraded,
                'total_writes': self._total_writes,
                'total_failures': self._total_failures,
                'failures_in_window': failures_in_window,
                'failure_rate': failure_rate,
                'threshold': self.config.failure_threshold_percent,
                'last_error': self._last_error,
                'last_failure_at': self._last_failure_at,
            }
