"""Metrics collector — thread-safe counters for record intake and Loki pushes."""

import threading
import time


class MetricsCollector:
    """Collects and reports metrics about records received and pushed."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records_received: int = 0
        self._pushes_sent: int = 0
        self._pushes_failed: int = 0
        self._entries_sent: int = 0
        self._entries_dropped: int = 0
        self._streams_sent: int = 0
        self._total_bytes: int = 0
        self._not_ready_flushes: int = 0
        self._send_times: list[float] = []
        self._start_time = time.monotonic()

    def record_received(self) -> None:
        with self._lock:
            self._records_received += 1

    def record_push(
        self,
        streams: int,
        entries: int,
        bytes_sent: int,
        send_time_ms: float,
    ) -> None:
        """Record metrics for one successful push request.

        Args:
            streams: Number of streams (distinct label sets) in the batch.
            entries: Number of log lines in the batch.
            bytes_sent: Serialized request body size in bytes.
            send_time_ms: Round-trip time of the request, in milliseconds.
        """
        with self._lock:
            self._pushes_sent += 1
            self._streams_sent += streams
            self._entries_sent += entries
            self._total_bytes += bytes_sent
            self._send_times.append(send_time_ms)

    def record_failure(self, entries: int) -> None:
        """Record a failed push whose *entries* are dropped."""
        with self._lock:
            self._pushes_failed += 1
            self._entries_dropped += entries

    def record_not_ready(self) -> None:
        with self._lock:
            self._not_ready_flushes += 1

    def snapshot(self) -> dict:
        """Return a point-in-time snapshot of all collected metrics."""
        with self._lock:
            send_times = list(self._send_times)
            avg_send = sum(send_times) / len(send_times) if send_times else 0.0

            return {
                "records_received": self._records_received,
                "pushes_sent": self._pushes_sent,
                "pushes_failed": self._pushes_failed,
                "streams_sent": self._streams_sent,
                "entries_sent": self._entries_sent,
                "entries_dropped": self._entries_dropped,
                "total_bytes": self._total_bytes,
                "not_ready_flushes": self._not_ready_flushes,
                "avg_send_time_ms": avg_send,
                "p95_send_time_ms": self._percentile(send_times, 95),
                "uptime_seconds": time.monotonic() - self._start_time,
            }

    @staticmethod
    def _percentile(data: list, pct: float) -> float:
        """Interpolated percentile of *data*, or 0.0 if it is empty."""
        if not data:
            return 0.0

        sorted_data = sorted(data)
        n = len(sorted_data)

        if n == 1:
            return float(sorted_data[0])

        idx = (pct / 100) * (n - 1)
        lower = int(idx)
        upper = lower + 1
        fraction = idx - lower

        if upper >= n:
            return float(sorted_data[-1])

        return float(sorted_data[lower] + fraction * (sorted_data[upper] - sorted_data[lower]))
