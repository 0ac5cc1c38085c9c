from __future__ import annotations


def should_recompute(
    current_length: int,
    last_processed_length: int,
    cached_snapshot_present: bool,
    threshold: int,
    force: bool = False,
) -> bool:
    """Decide whether a cached memory snapshot must be derived again.

    This is a cheap length heuristic, not a correctness guarantee: it never
    hashes content, so two transcripts of equal length with different turns
    look identical. Growth and pruning are treated the same way through the
    absolute length delta.
    """

    if threshold < 0:
        raise ValueError("Cache threshold must be non-negative.")
    if force or not cached_snapshot_present:
        return True
    return abs(current_length - last_processed_length) >= threshold
