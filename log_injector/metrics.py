"""
Run metrics for the log_injector package.

Lightweight counters and timings for an injection run (files scanned,
functions instrumented, per-file processing time). Exported as a dict
for the end-of-run summary.
"""

import time
import logging
import threading
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@dataclass
class TimerResult:
    """Result of a timed operation."""
    operation: str
    duration_ms: float
    success: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)


class MetricsCollector:
    """
    Thread-safe metrics collector for injection runs.

    Usage:
        metrics = MetricsCollector()

        with metrics.timer("process_file"):
            result = instrument_source(...)

        metrics.increment("functions.instrumented")
        print(metrics.summary())
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: Dict[str, int] = {}
        self._timings: Dict[str, list] = {}
        self._errors: Dict[str, int] = {}
        self._start_time = time.time()

    # --- Counter Operations ---

    def increment(self, name: str, amount: int = 1) -> None:
        """Increment a named counter."""
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def get_counter(self, name: str) -> int:
        """Get the current value of a counter."""
        with self._lock:
            return self._counters.get(name, 0)

    # --- Timing Operations ---

    @contextmanager
    def timer(self, operation: str, metadata: Dict[str, Any] = None):
        """
        Context manager to time an operation.

        Usage:
            with metrics.timer("scan_headers"):
                ...
        """
        start = time.time()
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            duration_ms = (time.time() - start) * 1000
            self._record_timing(operation, duration_ms, success, metadata)

    def _record_timing(self, operation: str, duration_ms: float,
                       success: bool, metadata: Dict[str, Any] = None) -> None:
        result = TimerResult(
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            metadata=metadata or {},
        )

        with self._lock:
            self._timings.setdefault(operation, []).append(result)
            suffix = "success" if success else "failure"
            key = f"{operation}.{suffix}"
            self._counters[key] = self._counters.get(key, 0) + 1

    def get_timing_stats(self, operation: str) -> Optional[Dict[str, float]]:
        """
        Get timing statistics for an operation.

        Returns dict with: count, total_ms, avg_ms, min_ms, max_ms, success_rate
        """
        with self._lock:
            entries = self._timings.get(operation, [])
            if not entries:
                return None

            durations = [e.duration_ms for e in entries]
            successes = sum(1 for e in entries if e.success)

            return {
                "count": len(entries),
                "total_ms": sum(durations),
                "avg_ms": sum(durations) / len(durations),
                "min_ms": min(durations),
                "max_ms": max(durations),
                "success_rate": successes / len(entries),
            }

    # --- Error Tracking ---

    def record_error(self, error_type: str, message: str = "") -> None:
        """Record an error occurrence."""
        with self._lock:
            self._errors[error_type] = self._errors.get(error_type, 0) + 1
            self._counters["errors.total"] = self._counters.get("errors.total", 0) + 1
        logger.debug(f"Error recorded: {error_type} - {message}")

    def get_error_counts(self) -> Dict[str, int]:
        """Get all error counts by type."""
        with self._lock:
            return dict(self._errors)

    # --- Summary and Export ---

    def summary(self) -> Dict[str, Any]:
        """Generate a metrics summary suitable for logging."""
        with self._lock:
            timing_stats = {}
            for op in self._timings:
                stats = self.get_timing_stats(op)
                if stats:
                    timing_stats[op] = stats

            return {
                "uptime_seconds": round(time.time() - self._start_time, 2),
                "counters": dict(self._counters),
                "timings": timing_stats,
                "errors": dict(self._errors),
            }

    def log_summary(self, level: int = logging.INFO) -> None:
        """Log the metrics summary at the specified log level."""
        logger.log(level, f"Log Injector Metrics: {self.summary()}")

    def reset(self) -> None:
        """Reset all metrics. Useful for testing."""
        with self._lock:
            self._counters.clear()
            self._timings.clear()
            self._errors.clear()
            self._start_time = time.time()
