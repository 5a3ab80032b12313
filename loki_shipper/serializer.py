"""Push serializer — encodes a PushBatch as the Loki JSON push body."""

import json

from loki_shipper.models import PushBatch


class SerializationError(Exception):
    """Raised when a push batch cannot be encoded."""


def label_value_to_str(value) -> str:
    """Render a label value as the string Loki expects.

    Strings pass through unchanged, booleans become ``true``/``false``,
    None becomes the empty string and nested values become compact JSON.
    """
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=True, allow_nan=False)


def encode_push_batch(batch: PushBatch) -> bytes:
    """Serialize a batch to UTF-8 JSON bytes.

    Raises:
        SerializationError: If any label or entry cannot be encoded.
    """
    try:
        body = {
            "streams": [
                {
                    "stream": {
                        str(name): label_value_to_str(value)
                        for name, value in stream.labels.items()
                    },
                    "values": [[str(ts), str(line)] for ts, line in stream.entries],
                }
                for stream in batch.streams
            ]
        }
        return json.dumps(body, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"JSON encoding of push batch failed: {exc}") from exc
