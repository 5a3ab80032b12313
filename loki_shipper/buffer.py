"""Ingestion buffer — bounded queue between record producers and the scheduler."""

import queue

from loki_shipper.models import StreamFragment

DEFAULT_CAPACITY = 10240


class IngestionBuffer:
    """Fixed-capacity FIFO of StreamFragments.

    Any number of threads may call push(); a full buffer blocks them until
    the single consumer (the batch scheduler) takes a fragment out.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def qsize(self) -> int:
        return self._queue.qsize()

    def push(self, fragment: StreamFragment, timeout: float | None = None):
        """Enqueue a fragment, blocking while the buffer is full.

        With a timeout, raises queue.Full if no slot frees up in time.
        """
        self._queue.put(fragment, block=True, timeout=timeout)

    def get(self, timeout: float | None = None) -> StreamFragment | None:
        """Return the next fragment, or None if none arrives within *timeout*."""
        try:
            if timeout is not None and timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[StreamFragment]:
        """Remove and return everything currently queued, without blocking."""
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return items
