"""Label resolution — attaches configured labels to incoming log records."""

import logging
import time
from datetime import datetime, timezone

from loki_shipper.config import LabelRule
from loki_shipper.models import StreamFragment

logger = logging.getLogger(__name__)

# Record fields copied into the label set when present.
RECORD_LABEL_FIELDS = ("severity", "facility", "hostname", "priority")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z UTC",
    "%Y-%m-%d %H:%M:%S %z",
)


def host_of(address) -> str:
    """Return the host portion of a ``host:port`` source address."""
    if not address:
        return ""
    address = str(address)
    if address.startswith("["):
        end = address.find("]")
        return address[1:end] if end > 0 else address
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    # Bare host, or an IPv6 address without a port.
    return address


class LabelResolver:
    """Linear scan over the configured rule table, first match wins."""

    def __init__(self, rules: list[LabelRule] | tuple = ()):
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple:
        return self._rules

    def _find(self, key: str) -> dict | None:
        for rule in self._rules:
            if rule.tag == key:
                return rule.labels
        return None

    def match(self, tag, source_address) -> tuple[dict | None, str]:
        """Return the matched rule labels (or None) and the key they were found under.

        When nothing matches, the key is the last one tried.
        """
        key = ""
        if tag:
            key = str(tag)
            labels = self._find(key)
            if labels is not None:
                return labels, key
        host = host_of(source_address)
        if host:
            key = host
            labels = self._find(key)
            if labels is not None:
                return labels, key
        return None, key

    def resolve(self, tag, source_address) -> tuple[dict, bool]:
        """Return ``(labels, matched)`` for a record's tag and source address.

        The tag is tried first, then the host of the source address. An
        unmatched record gets an empty label set; that is not an error.
        """
        labels, _ = self.match(tag, source_address)
        if labels is None:
            return {}, False
        return dict(labels), True


def timestamp_nanos(value, now=None) -> str:
    """Convert a record timestamp to Unix nanoseconds as a decimal string.

    Accepts a datetime or a string; anything else (or an unparsable string)
    falls back to the current time.
    """
    dt = None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            for fmt in _TIMESTAMP_FORMATS:
                try:
                    dt = datetime.strptime(value, fmt)
                    break
                except ValueError:
                    continue
        if dt is None:
            logger.debug("Unparsable timestamp %r, using current time", value)

    if dt is None:
        ns = time.time_ns() if now is None else int(now * 1_000_000_000)
        return str(ns)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    delta = dt - _EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return str(seconds * 1_000_000_000 + delta.microseconds * 1000)


def build_fragment(record: dict, resolver: LabelResolver, now=None) -> StreamFragment:
    """Turn one log record into a single-entry StreamFragment."""
    tag = record.get("tag")
    client = record.get("client")
    rule_labels, key = resolver.match(tag, client)
    if rule_labels is None:
        logger.debug("No label rule for tag=%r client=%r", tag, client)
    labels = dict(rule_labels or {})
    labels["tag"] = key
    for name in RECORD_LABEL_FIELDS:
        if name in record:
            labels[name] = record[name]

    content = record.get("content")
    line = "" if content is None else str(content)
    return StreamFragment(
        labels=labels,
        entries=[(timestamp_nanos(record.get("timestamp"), now), line)],
    )
