from __future__ import annotations

import pytest

from memory_processor.memory.cache_policy import should_recompute


@pytest.mark.parametrize("delta", [0, 1, 3, 7])
def test_policy_is_symmetric_in_delta_sign(delta: int) -> None:
    grown = should_recompute(20 + delta, 20, True, 3)
    pruned = should_recompute(20 - delta, 20, True, 3)
    assert grown == pruned


@pytest.mark.parametrize(
    ("current", "last", "present", "threshold"),
    [(10, 10, True, 5), (0, 0, True, 100), (3, 50, False, 1), (12, 10, True, 0)],
)
def test_force_always_recomputes(current: int, last: int, present: bool, threshold: int) -> None:
    assert should_recompute(current, last, present, threshold, force=True) is True


def test_missing_snapshot_recomputes() -> None:
    assert should_recompute(10, 10, False, 5) is True


def test_zero_delta_with_snapshot_and_positive_threshold_is_cached() -> None:
    assert should_recompute(10, 10, True, 1) is False
    assert should_recompute(10, 10, True, 5) is False


def test_threshold_boundary() -> None:
    assert should_recompute(14, 10, True, 5) is False
    assert should_recompute(15, 10, True, 5) is True
    assert should_recompute(5, 10, True, 5) is True


def test_zero_threshold_recomputes_on_any_evaluation() -> None:
    assert should_recompute(11, 10, True, 0) is True
    assert should_recompute(10, 10, True, 0) is True


def test_equal_length_with_different_content_is_not_detected() -> None:
    # Length is the only signal; edits that keep the count stay cached.
    assert should_recompute(8, 8, True, 2) is False


def test_negative_threshold_is_rejected() -> None:
    with pytest.raises(ValueError):
        should_recompute(1, 0, True, -1)
