from __future__ import annotations

from conftest import ManualExecutor, SyncExecutor, make_hand
from treemotion.errors import PoseEstimationError
from treemotion.gesture import GesturePoller, SignalProcessor
from treemotion.types import GestureState, RawHandFrame


class FakeDetector:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self.closed = False

    def detect(self, frame_bgr):
        self.calls += 1
        r = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(r, BaseException):
            raise r
        return r

    def close(self):
        self.closed = True


def test_submit_and_collect_open_hand():
    det = FakeDetector([make_hand(2.0)])
    poller = GesturePoller(det, executor=SyncExecutor())
    samples = []
    for i in range(6):
        assert poller.submit(object(), now=i * 0.2)
        samples.append(poller.collect())
    assert all(s.detected for s in samples)
    assert samples[-1].state is GestureState.OPEN
    assert poller.last_frame is not None


def test_collect_without_result_returns_none():
    poller = GesturePoller(FakeDetector([make_hand(1.0)]), executor=ManualExecutor())
    assert poller.collect() is None


def test_throttled_submit_is_dropped():
    det = FakeDetector([make_hand(1.0)])
    poller = GesturePoller(det, executor=SyncExecutor())
    assert poller.submit(object(), now=0.0)
    poller.collect()
    assert not poller.submit(object(), now=0.05)
    assert poller.submit(object(), now=0.1)
    assert det.calls == 2


def test_no_overlapping_polls():
    ex = ManualExecutor()
    det = FakeDetector([make_hand(1.0)])
    poller = GesturePoller(det, executor=ex)
    assert poller.submit(object(), now=0.0)
    assert not poller.submit(object(), now=1.0)
    assert poller.collect() is None

    ex.finish()
    sample = poller.collect()
    assert sample is not None and sample.detected
    assert poller.submit(object(), now=2.0)


def test_close_discards_in_flight_result():
    ex = ManualExecutor()
    det = FakeDetector([make_hand(2.0)])
    poller = GesturePoller(det, executor=ex)
    poller.submit(object(), now=0.0)
    poller.close()
    ex.finish()
    assert poller.collect() is None
    assert not poller.submit(object(), now=1.0)
    assert det.closed
    assert poller.processor.detected is False


def test_detector_failure_degrades_then_recovers():
    det = FakeDetector([PoseEstimationError("camera busy"), make_hand(1.0)])
    poller = GesturePoller(det, executor=SyncExecutor())
    assert poller.submit(object(), now=0.0)
    assert poller.collect() is None
    assert poller.available is False

    assert not poller.submit(object(), now=0.01)
    assert poller.submit(object(), now=0.1)
    sample = poller.collect()
    assert sample is not None and sample.detected
    assert poller.available is True


def test_unexpected_detector_errors_degrade_instead_of_raising():
    poller = GesturePoller(FakeDetector([KeyError("boom"), make_hand(1.0)]), executor=SyncExecutor())
    assert poller.submit(object(), now=0.0)
    assert poller.collect() is None
    assert poller.available is False

    assert poller.submit(object(), now=0.1)
    assert poller.collect().detected
    assert poller.available is True


def test_failing_detector_is_still_throttled():
    det = FakeDetector([PoseEstimationError("no model")])
    poller = GesturePoller(det, executor=SyncExecutor())
    for i in range(30):
        poller.submit(object(), now=i / 60.0)
        poller.collect()
    assert 4 <= det.calls <= 6
    assert poller.available is False


def test_cancelled_poll_uses_its_throttle_slot():
    ex = ManualExecutor()
    det = FakeDetector([make_hand(1.0)])
    poller = GesturePoller(det, executor=ex)
    assert poller.submit(object(), now=0.0)
    future = ex.jobs.pop()[0]
    future.cancel()
    assert not poller.submit(object(), now=0.05)
    assert poller.submit(object(), now=0.1)


def test_empty_frames_count_as_misses():
    det = FakeDetector([make_hand(1.0)] + [RawHandFrame.empty(640, 480)] * 5)
    processor = SignalProcessor()
    poller = GesturePoller(det, processor=processor, executor=SyncExecutor())
    samples = []
    for i in range(6):
        poller.submit(object(), now=i * 0.2)
        samples.append(poller.collect())
    assert [s.detected for s in samples] == [True, True, True, True, True, False]


def test_context_manager_closes_detector():
    det = FakeDetector([make_hand(1.0)])
    with GesturePoller(det, executor=SyncExecutor()) as poller:
        poller.submit(object(), now=0.0)
    assert det.closed
    assert poller.closed
