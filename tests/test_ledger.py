from __future__ import annotations

import random

import pytest

from crystal_ball_lottery.ledger import (
    BallAwarded,
    BallLedger,
    ThresholdCrossed,
    WinnerRecord,
    WinnersHistory,
)


@pytest.mark.parametrize("start", [0, 1, 2])
def test_record_win_from_each_count(start):
    ledger = BallLedger.from_mapping({"x": start} if start else {})
    result = ledger.record_win("x")
    if start + 1 < 3:
        assert result == BallAwarded("x", start + 1)
        assert ledger.count("x") == start + 1
    else:
        assert result == ThresholdCrossed("x")
        assert ledger.count("x") == 0


def test_third_ball_resets_to_zero():
    ledger = BallLedger.from_mapping({"x": 2})
    assert ledger.record_win("x") == ThresholdCrossed("x")
    assert ledger.count("x") == 0
    assert ledger.record_win("x") == BallAwarded("x", 1)


def test_counts_never_leave_range():
    ledger = BallLedger()
    rng = random.Random(11)
    crossings = 0
    for _ in range(500):
        if isinstance(ledger.record_win(rng.choice("abcd")), ThresholdCrossed):
            crossings += 1
        assert all(0 <= count <= 2 for _, count in ledger.items())
    assert crossings > 0


def test_unknown_address_has_no_balls():
    assert BallLedger().count("nobody") == 0


def test_load_drops_blacklisted_addresses_case_insensitively():
    ledger = BallLedger.from_mapping(
        {"0xAbC": 2, "0xdef": 1, "0x123": 1},
        blacklist=frozenset({"0xabc", "0x123"}),
    )
    assert ledger.as_dict() == {"0xdef": 1}
    assert "0xAbC" not in ledger


@pytest.mark.parametrize("bad", [-1, 3, 7, "2", 1.0, True])
def test_load_rejects_invalid_counts(bad):
    with pytest.raises(ValueError):
        BallLedger.from_mapping({"x": bad})


def test_top_orders_by_count_then_address():
    ledger = BallLedger.from_mapping({"b": 1, "a": 1, "c": 2, "d": 0})
    assert ledger.top(3) == [("c", 2), ("a", 1), ("b", 1)]
    assert ledger.top(0) == []


def test_custom_threshold():
    ledger = BallLedger(threshold=2)
    assert ledger.record_win("x") == BallAwarded("x", 1)
    assert ledger.record_win("x") == ThresholdCrossed("x")


def test_history_is_append_only():
    history = WinnersHistory([WinnerRecord("a", 30.5)])
    snapshot = history.records()
    history.append(WinnerRecord("b", 99.1))

    assert snapshot == (WinnerRecord("a", 30.5),)
    assert history.records() == (WinnerRecord("a", 30.5), WinnerRecord("b", 99.1))
    assert not hasattr(history, "remove")
    with pytest.raises(AttributeError):
        history.records()[0].percentage = 1.0  # type: ignore[misc]


def test_history_top_does_not_reorder_records():
    history = WinnersHistory([WinnerRecord("a", 30.0), WinnerRecord("b", 80.0), WinnerRecord("c", 55.0)])
    assert [r.address for r in history.top(2)] == ["b", "c"]
    assert [r.address for r in history.records()] == ["a", "b", "c"]


@pytest.mark.parametrize("pct", [0, -5, 100.01])
def test_history_rejects_out_of_range_percentage(pct):
    with pytest.raises(ValueError):
        WinnersHistory().append(WinnerRecord("a", pct))
