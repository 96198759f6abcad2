from __future__ import annotations

import pytest

from treemotion.errors import ConfigurationError
from treemotion.morph import MorphController, Timeline


def test_converges_from_chaos_to_formed():
    m = MorphController(mix=0.0, target=0)
    values = [m.update(0.016, target=1) for _ in range(60)]
    assert values[-1] >= 0.99
    assert max(values) <= 1.0
    assert all(b >= a for a, b in zip(values, values[1:]))


def test_bounded_number_of_ticks_to_converge():
    m = MorphController(mix=0.0, target=1)
    ticks = 0
    while m.mix <= 0.99:
        m.update(1 / 30)
        ticks += 1
        assert ticks < 200
    assert m.mix <= 1.0


def test_no_overshoot_with_large_dt():
    m = MorphController(mix=1.0, target=0)
    prev = m.mix
    for _ in range(50):
        cur = m.update(5.0)
        assert 0.0 <= cur <= prev
        prev = cur
    assert m.mix == pytest.approx(0.0, abs=1e-9)


def test_idempotent_at_target():
    m = MorphController(mix=1.0, target=1)
    for _ in range(10):
        assert m.update(0.016) == 1.0


def test_zero_and_negative_dt_do_nothing():
    m = MorphController(mix=0.5, target=1)
    assert m.update(0.0) == 0.5
    assert m.update(-1.0) == 0.5


@pytest.mark.parametrize("bad", [0.5, 2, -1])
def test_rejects_non_binary_target(bad):
    m = MorphController()
    with pytest.raises(ConfigurationError):
        m.set_target(bad)


def test_timeline_fires_in_order():
    tl = Timeline()
    fired = []
    tl.schedule(0.8, "late", lambda: fired.append("late"))
    tl.schedule(0.2, "early", lambda: fired.append("early"))
    tl.schedule(0.2, "early2", lambda: fired.append("early2"))
    assert tl.advance(0.1) == []
    assert tl.advance(0.15) == ["early", "early2"]
    assert tl.advance(1.0) == ["late"]
    assert fired == ["early", "early2", "late"]
    assert len(tl) == 0


def test_timeline_cancel():
    tl = Timeline()
    fired = []
    tl.schedule(0.5, "a", lambda: fired.append("a"))
    tl.schedule(1.0, "b", lambda: fired.append("b"))
    assert [name for _, name in tl.pending] == ["a", "b"]
    assert tl.cancel() == 2
    tl.advance(2.0)
    assert fired == []


def test_timeline_actions_can_schedule_follow_ups():
    tl = Timeline()
    fired = []

    def first():
        fired.append("first")
        tl.schedule(0.0, "second", lambda: fired.append("second"))

    tl.schedule(0.1, "first", first)
    tl.advance(0.2)
    assert fired == ["first", "second"]
