from __future__ import annotations

import numpy as np
import pytest

from treemotion.errors import ConfigurationError
from treemotion.gesture import HysteresisClassifier, SignalProcessor, openness_ratio, wrist_position
from treemotion.types import GestureState, RawHandFrame

OPEN = GestureState.OPEN
CLOSED = GestureState.CLOSED


def test_hysteresis_scenario():
    c = HysteresisClassifier()
    states = [c.update(r) for r in [1.0, 1.3, 1.7, 1.8, 1.4, 1.1]]
    assert states == [CLOSED, CLOSED, OPEN, OPEN, OPEN, CLOSED]


def test_hysteresis_flips_once_each_way():
    c = HysteresisClassifier()
    rising = [c.update(r) for r in np.linspace(1.0, 2.0, 21)]
    assert sum(1 for a, b in zip(rising, rising[1:]) if a is not b) == 1
    assert rising[-1] is OPEN

    falling = [c.update(r) for r in np.linspace(2.0, 1.0, 21)]
    assert sum(1 for a, b in zip(falling, falling[1:]) if a is not b) == 1
    assert falling[-1] is CLOSED


@pytest.mark.parametrize("start", [1.0, 2.0])
def test_oscillation_inside_band_keeps_state(start):
    c = HysteresisClassifier()
    initial = c.update(start)
    for r in [1.25, 1.55, 1.21, 1.59, 1.4] * 4:
        assert c.update(r) is initial


def test_thresholds_must_be_ordered():
    with pytest.raises(ConfigurationError):
        HysteresisClassifier(open_threshold=1.0, close_threshold=1.5)


def test_ratio_and_position(hand):
    frame = hand(1.8, wrist=(0.0, 0.0))
    assert openness_ratio(frame.landmarks) == pytest.approx(1.8)
    # Left edge of the camera maps to +1 after mirroring, top edge to +1.
    assert wrist_position(frame.landmarks, frame.width, frame.height) == pytest.approx((1.0, 1.0))


def test_open_hand_classified_open(hand):
    p = SignalProcessor(interval_s=0.0)
    s = p.update(hand(2.0))
    assert s.detected and s.state is OPEN
    assert s.openness_ratio == pytest.approx(2.0)
    assert s.position == pytest.approx((0.0, 0.0))


def test_position_is_mean_of_window(hand):
    p = SignalProcessor(interval_s=0.0)
    p.update(hand(1.0, wrist=(160.0, 240.0)))
    s = p.update(hand(1.0, wrist=(480.0, 240.0)))
    assert s.position == pytest.approx((0.0, 0.0))


def test_history_windows_are_bounded(hand):
    p = SignalProcessor(interval_s=0.0)
    for i in range(12):
        p.update(hand(1.0 + i * 0.01))
    assert len(p.position_history) == 8
    assert len(p.ratio_history) == 5


def test_throttle_drops_fast_polls(hand):
    p = SignalProcessor(interval_s=0.1)
    assert p.process(hand(2.0), now=0.0) is not None
    assert p.process(hand(1.0), now=0.05) is None
    assert len(p.ratio_history) == 1
    assert p.process(hand(1.0), now=0.1) is not None
    assert len(p.ratio_history) == 2


def test_four_misses_then_hit_keep_state(hand):
    p = SignalProcessor(interval_s=0.0)
    p.update(hand(2.0, wrist=(100.0, 100.0)))
    for _ in range(4):
        s = p.update(RawHandFrame.empty())
        assert s.detected
        assert s.state is OPEN
    assert len(p.ratio_history) == 1
    s = p.update(hand(2.0))
    assert s.detected and s.state is OPEN
    assert len(p.ratio_history) == 2
    assert len(p.position_history) == 2
    assert p.missed_frames == 0


def test_five_misses_reset(hand):
    p = SignalProcessor(interval_s=0.0)
    last = p.update(hand(2.0, wrist=(100.0, 100.0)))
    for _ in range(4):
        p.update(None)
    s = p.update(None)
    assert not s.detected
    assert s.state is CLOSED
    assert s.position == last.position
    assert p.position_history == ()
    assert p.ratio_history == ()


def test_malformed_landmarks_count_as_miss(hand):
    p = SignalProcessor(interval_s=0.0)
    p.update(hand(2.0))
    bad = hand(2.0).landmarks.copy()
    bad[0, 0] = np.nan
    s = p.update(RawHandFrame(landmarks=bad, width=640, height=480))
    assert p.missed_frames == 1
    assert s.detected
    assert len(p.ratio_history) == 1

    p.update(RawHandFrame(landmarks=np.zeros((5, 2)), width=640, height=480))
    assert p.missed_frames == 2


def test_no_hand_before_first_detection():
    p = SignalProcessor(interval_s=0.0)
    s = p.update(RawHandFrame.empty())
    assert not s.detected
    assert s.state is CLOSED
    assert s.position == (0.0, 0.0)
