"""Batcher — splits accumulated fragments into push batches and merges equal label sets."""

from loki_shipper.models import PushBatch, StreamFragment, label_key

DEFAULT_MAX_PER_BATCH = 4096


def merge_streams(fragments: list[StreamFragment]) -> PushBatch:
    """Merge fragments sharing an identical label set into one stream.

    Label sets keep the order in which they first appear and entries keep
    arrival order. The input fragments are left untouched.
    """
    batch = PushBatch()
    by_key: dict[frozenset, StreamFragment] = {}

    for fragment in fragments:
        key = label_key(fragment.labels)
        merged = by_key.get(key)
        if merged is None:
            merged = StreamFragment(labels=fragment.labels, entries=list(fragment.entries))
            by_key[key] = merged
            batch.streams.append(merged)
        else:
            merged.entries.extend(fragment.entries)

    return batch


def make_batches(
    fragments: list[StreamFragment],
    max_per_batch: int = DEFAULT_MAX_PER_BATCH,
) -> list[PushBatch]:
    """Split *fragments* into contiguous chunks of at most *max_per_batch*
    fragments and merge each chunk.

    Chunk ``i`` holds fragments ``[i * max_per_batch, (i + 1) * max_per_batch)``;
    the last chunk holds the remainder. An empty input yields no batches.
    """
    if max_per_batch < 1:
        raise ValueError("max_per_batch must be at least 1")

    return [
        merge_streams(fragments[start:start + max_per_batch])
        for start in range(0, len(fragments), max_per_batch)
    ]
