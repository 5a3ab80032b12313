"""Stream fragment and push batch models."""

from dataclasses import dataclass, field


@dataclass
class StreamFragment:
    """One label set and the log lines pushed under it.

    Each entry is a ``(unix_nanos_as_decimal_string, line)`` pair.
    """

    labels: dict = field(default_factory=dict)
    entries: list[tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stream": self.labels,
            "values": [[ts, line] for ts, line in self.entries],
        }


@dataclass
class PushBatch:
    """Streams sent to the sink in a single push request."""

    streams: list[StreamFragment] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return sum(len(s.entries) for s in self.streams)

    @property
    def max_stream_entries(self) -> int:
        return max((len(s.entries) for s in self.streams), default=0)

    def to_dict(self) -> dict:
        return {"streams": [s.to_dict() for s in self.streams]}


def _freeze(value):
    """Tag a label value with its kind so 1, 1.0, True and "1" stay distinct."""
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int):
        return ("int", value)
    if isinstance(value, float):
        return ("float", value)
    if isinstance(value, str):
        return ("str", value)
    if value is None:
        return ("null", None)
    if isinstance(value, dict):
        return ("map", frozenset((k, _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("list", tuple(_freeze(v) for v in value))
    raise TypeError(f"Unsupported label value type: {type(value).__name__}")


def label_key(labels: dict) -> frozenset:
    """Hashable key with full structural equality over a label set.

    Key order is irrelevant and nested mappings/lists compare by content.
    """
    return frozenset((name, _freeze(value)) for name, value in labels.items())
