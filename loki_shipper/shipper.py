"""Loki shipper — wires label resolution, buffering, scheduling and delivery together."""

import logging
import threading

from loki_shipper.buffer import IngestionBuffer
from loki_shipper.client import LokiClient
from loki_shipper.config import Config
from loki_shipper.labels import LabelResolver, build_fragment
from loki_shipper.metrics import MetricsCollector
from loki_shipper.scheduler import BatchScheduler

logger = logging.getLogger(__name__)


class LokiShipper:
    """High-level entry point: submit() records, they end up in Loki.

    Raises ConfigError at construction when the Loki server URL is malformed.
    """

    def __init__(self, config: Config, shutdown_event: threading.Event):
        self._config = config
        self._shutdown = shutdown_event
        self._metrics = MetricsCollector()
        self._resolver = LabelResolver(config.scrape_config)
        self._buffer = IngestionBuffer(config.queue_size)
        self._client = LokiClient(
            config.loki_server,
            timeout=config.request_timeout,
            ready_retries=config.ready_retries,
        )
        self._scheduler = BatchScheduler(
            self._buffer,
            self._client,
            shutdown_event,
            flush_interval=config.flush_interval,
            ready_interval=config.ready_interval,
            max_streams_per_push=config.max_streams_per_push,
            metrics=self._metrics,
        )

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def scheduler(self) -> BatchScheduler:
        return self._scheduler

    @property
    def buffer(self) -> IngestionBuffer:
        return self._buffer

    def start(self):
        """Probe the sink and start the scheduler loop."""
        self._scheduler.start()
        logger.info(
            "Shipping to %s every %.1fs (%d label rule(s))",
            self._client.base_url,
            self._config.flush_interval,
            len(self._resolver.rules),
        )

    def submit(self, record: dict, timeout: float | None = None):
        """Label a record and enqueue it, blocking while the buffer is full."""
        fragment = build_fragment(record, self._resolver)
        self._buffer.push(fragment, timeout=timeout)
        self._metrics.record_received()

    def stop(self, timeout: float | None = None):
        """Run the final flush, close the HTTP session and log final metrics."""
        self._scheduler.stop(timeout=timeout)
        self._client.close()
        logger.info("Shipper metrics: %s", self._metrics.snapshot())
