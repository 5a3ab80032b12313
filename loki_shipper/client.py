"""Loki client — pushes batches over HTTP and probes the sink's readiness endpoint."""

import logging

import requests

from loki_shipper.config import ConfigError, validate_server_url
from loki_shipper.models import PushBatch
from loki_shipper.serializer import encode_push_batch

logger = logging.getLogger(__name__)

PUSH_API = "/loki/api/v1/push"
READY_API = "/ready"
DEFAULT_TIMEOUT = 3.0
DEFAULT_READY_RETRIES = 3


class DeliveryError(Exception):
    """Raised when a push request fails or the sink rejects it."""


def probe_readiness(
    base_url: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    retries: int = DEFAULT_READY_RETRIES,
) -> bool:
    """GET ``<base_url>/ready`` up to *retries* times, back to back.

    Returns True on the first HTTP 200. A malformed *base_url* is reported
    as not ready without sending any request.
    """
    try:
        base_url = validate_server_url(base_url)
    except ConfigError as exc:
        logger.warning("Loki server is not ready: %s", exc)
        return False

    http = session or requests
    url = base_url + READY_API
    for attempt in range(1, retries + 1):
        try:
            resp = http.get(url, timeout=timeout)
        except requests.RequestException as exc:
            logger.warning(
                "Loki server %s is not ready (attempt %d/%d): %s",
                base_url, attempt, retries, exc,
            )
            continue
        if resp.status_code == 200:
            return True
        logger.warning(
            "Loki server %s is not ready (attempt %d/%d): http status=%d",
            base_url, attempt, retries, resp.status_code,
        )
    return False


class LokiClient:
    """HTTP client for a Loki push endpoint.

    A malformed server URL is a construction error; a failed push raises
    DeliveryError and is never retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        ready_retries: int = DEFAULT_READY_RETRIES,
        session: requests.Session | None = None,
    ):
        self._base_url = validate_server_url(base_url)
        self._timeout = timeout
        self._ready_retries = ready_retries
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def push_url(self) -> str:
        return self._base_url + PUSH_API

    def push(self, batch: PushBatch) -> int:
        """POST one batch to the push endpoint and return the body size in bytes.

        Raises:
            SerializationError: If the batch cannot be encoded.
            DeliveryError: On a network error or a non-2xx response.
        """
        body = encode_push_batch(batch)
        try:
            resp = self._session.post(
                self.push_url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise DeliveryError(f"Push to {self.push_url} failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise DeliveryError(
                f"Push to {self.push_url} rejected: http status={resp.status_code} "
                f"body={resp.text[:200]!r}"
            )

        logger.debug(
            "Push log to Loki success: %d item(s) in %d stream(s), max items of stream=%d",
            batch.entry_count, len(batch.streams), batch.max_stream_entries,
        )
        return len(body)

    def probe_readiness(self) -> bool:
        return probe_readiness(
            self._base_url, self._session, self._timeout, self._ready_retries
        )

    def close(self):
        """Close the underlying HTTP session."""
        self._session.close()
