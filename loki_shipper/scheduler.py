"""Batch scheduler — single control loop that owns pending fragments and readiness.

Every mutation of the pending fragment list and the readiness flag happens on
the scheduler thread, so neither needs a lock. The ingestion buffer is the
only structure shared with producer threads.
"""

import logging
import threading
import time

from loki_shipper.batcher import DEFAULT_MAX_PER_BATCH, make_batches
from loki_shipper.buffer import IngestionBuffer
from loki_shipper.client import DeliveryError, LokiClient
from loki_shipper.metrics import MetricsCollector
from loki_shipper.models import StreamFragment
from loki_shipper.serializer import SerializationError

logger = logging.getLogger(__name__)

# Upper bound on a single buffer wait so the shutdown event is seen promptly.
POLL_INTERVAL = 0.5


class BatchScheduler:
    """Drains the ingestion buffer and flushes to Loki on two timers.

    Event sources, serviced as they become due:
      - fragment arrival: appended to the pending list
      - flush timer (``flush_interval``): flush()
      - readiness timer (``ready_interval``): refresh_readiness()
      - shutdown event: drain the buffer, flush() once more, exit
    """

    def __init__(
        self,
        buffer: IngestionBuffer,
        client: LokiClient,
        shutdown_event: threading.Event,
        flush_interval: float = 3.0,
        ready_interval: float = 10.0,
        max_streams_per_push: int = DEFAULT_MAX_PER_BATCH,
        metrics: MetricsCollector | None = None,
        time_func=None,
    ):
        self._buffer = buffer
        self._client = client
        self._shutdown = shutdown_event
        self._flush_interval = flush_interval
        self._ready_interval = ready_interval
        self._max_streams_per_push = max_streams_per_push
        self._metrics = metrics or MetricsCollector()
        self._time_func = time_func or time.monotonic

        self._pending: list[StreamFragment] = []
        self._ready = False
        self._thread: threading.Thread | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Probe readiness once, then run the control loop on a daemon thread."""
        self._safe_refresh_readiness()
        self._thread = threading.Thread(
            target=self._run, name="batch-scheduler", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None):
        """Signal shutdown and wait for the final flush to complete.

        In-flight HTTP requests are not aborted; they run to their timeout.
        """
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Batch scheduler did not exit within %s s", timeout)
        else:
            self._final_flush()

    # ------------------------------------------------------------------
    # Control loop
    # ------------------------------------------------------------------

    def _run(self):
        now = self._time_func()
        next_flush = now + self._flush_interval
        next_ready = now + self._ready_interval

        while not self._shutdown.is_set():
            now = self._time_func()
            if now >= next_flush:
                self._safe_flush()
                next_flush = self._time_func() + self._flush_interval
                continue
            if now >= next_ready:
                self._safe_refresh_readiness()
                next_ready = self._time_func() + self._ready_interval
                continue

            wait = min(next_flush, next_ready) - now
            fragment = self._buffer.get(timeout=min(wait, POLL_INTERVAL))
            if fragment is not None:
                self._pending.append(fragment)

        self._final_flush()

    def _final_flush(self):
        self._pending.extend(self._buffer.drain())
        self._safe_flush()
        logger.info("Exiting loki client with %d fragment(s) unsent", len(self._pending))

    def _safe_flush(self):
        """Run flush() so that an unexpected error never kills the loop."""
        try:
            self.flush()
        except Exception:
            logger.exception(
                "Flush failed unexpectedly, dropping %d fragment(s)", len(self._pending)
            )
            self._pending.clear()

    def _safe_refresh_readiness(self):
        """Run refresh_readiness() so that a failing probe never kills the loop."""
        try:
            self.refresh_readiness()
        except Exception:
            logger.exception(
                "Readiness probe of %s failed unexpectedly", self._client.base_url
            )
            self._ready = False

    # ------------------------------------------------------------------
    # Timer handlers
    # ------------------------------------------------------------------

    def refresh_readiness(self) -> bool:
        """Re-run the readiness probe and overwrite the readiness flag."""
        ready = self._client.probe_readiness()
        if ready != self._ready:
            if ready:
                logger.info("Loki server %s is ready", self._client.base_url)
            else:
                logger.warning("Loki server %s is not ready", self._client.base_url)
        self._ready = ready
        return ready

    def flush(self):
        """Batch, merge and push every pending fragment.

        While the sink is not ready the pending list is kept for the next
        tick. Once a delivery is attempted the list is cleared whatever the
        outcome: a failed batch and the batches after it are dropped.
        """
        if not self._pending:
            return
        if not self._ready:
            self._metrics.record_not_ready()
            logger.warning(
                "Loki is not ready, keeping %d fragment(s) for the next flush",
                len(self._pending),
            )
            return

        batches = make_batches(list(self._pending), self._max_streams_per_push)
        try:
            for index, batch in enumerate(batches):
                start = time.monotonic()
                try:
                    bytes_sent = self._client.push(batch)
                except (DeliveryError, SerializationError) as exc:
                    dropped = sum(b.entry_count for b in batches[index:])
                    self._metrics.record_failure(dropped)
                    logger.warning(
                        "Push failed, dropping %d entries in %d batch(es): %s",
                        dropped, len(batches) - index, exc,
                    )
                    break
                elapsed_ms = (time.monotonic() - start) * 1000
                self._metrics.record_push(
                    streams=len(batch.streams),
                    entries=batch.entry_count,
                    bytes_sent=bytes_sent,
                    send_time_ms=elapsed_ms,
                )
        finally:
            self._pending.clear()
