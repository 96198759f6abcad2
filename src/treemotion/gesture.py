from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Deque, Optional, Tuple

import numpy as np

from . import config
from .errors import ConfigurationError, PoseEstimationError
from .types import GestureSample, GestureState, Point2, RawHandFrame
from .utils import mean_point


log = logging.getLogger(__name__)


class HysteresisClassifier:
    """
    Two-threshold OPEN/CLOSED decision.

    CLOSED flips to OPEN only above `open_threshold`, OPEN flips back only
    below `close_threshold`; anything in between keeps the current state.
    """

    def __init__(
        self,
        open_threshold: float = config.OPEN_THRESHOLD,
        close_threshold: float = config.CLOSE_THRESHOLD,
    ) -> None:
        if close_threshold > open_threshold:
            raise ConfigurationError(
                f"close_threshold ({close_threshold}) must not exceed open_threshold ({open_threshold})"
            )
        self.open_threshold = open_threshold
        self.close_threshold = close_threshold
        self.state = GestureState.CLOSED

    def update(self, ratio: float) -> GestureState:
        if self.state is GestureState.CLOSED and ratio > self.open_threshold:
            self.state = GestureState.OPEN
        elif self.state is GestureState.OPEN and ratio < self.close_threshold:
            self.state = GestureState.CLOSED
        return self.state

    def reset(self) -> None:
        self.state = GestureState.CLOSED


def wrist_position(landmarks: np.ndarray, width: int, height: int) -> Point2:
    """Wrist in normalised device coordinates, mirrored horizontally."""
    wx, wy = float(landmarks[config.WRIST][0]), float(landmarks[config.WRIST][1])
    x = -1.0 * ((wx / width) * 2.0 - 1.0)
    y = -1.0 * ((wy / height) * 2.0 - 1.0)
    return (x, y)


def openness_ratio(landmarks: np.ndarray) -> float:
    """Mean wrist-to-fingertip distance over mean wrist-to-knuckle distance."""
    pts = np.asarray(landmarks, dtype=np.float64)[:, :2]
    wrist = pts[config.WRIST]
    base = np.linalg.norm(pts[list(config.FINGER_BASES)] - wrist, axis=1).mean()
    tip = np.linalg.norm(pts[list(config.FINGER_TIPS)] - wrist, axis=1).mean()
    return float(tip / max(base, config.RATIO_EPSILON))


_USED_LANDMARKS = (config.WRIST,) + config.FINGER_BASES + config.FINGER_TIPS


class SignalProcessor:
    """
    Turns raw per-frame landmark detections into a stable `GestureSample`.

    Frames arriving faster than `interval_s` are dropped, not queued. A hand
    that disappears for fewer than `miss_limit` consecutive cycles keeps its
    last sample; on the `miss_limit`-th miss the classification resets to
    CLOSED, both histories are cleared and the sample reports
    `detected=False` with the last position frozen.
    """

    def __init__(
        self,
        interval_s: float = config.POLL_INTERVAL_S,
        position_window: int = config.POSITION_WINDOW,
        ratio_window: int = config.RATIO_WINDOW,
        miss_limit: int = config.MISSED_FRAMES_TO_RESET,
        classifier: Optional[HysteresisClassifier] = None,
    ) -> None:
        if interval_s < 0:
            raise ConfigurationError(f"interval_s must be >= 0, got {interval_s}")
        if position_window < 1 or ratio_window < 1 or miss_limit < 1:
            raise ConfigurationError("history windows and miss_limit must be >= 1")
        self.interval_s = interval_s
        self.miss_limit = miss_limit
        self.classifier = classifier or HysteresisClassifier()
        self._positions: Deque[Point2] = deque(maxlen=position_window)
        self._ratios: Deque[float] = deque(maxlen=ratio_window)
        self._last_poll: Optional[float] = None
        self._missed = 0
        self._detected = False
        self._last_position: Point2 = (0.0, 0.0)
        self._last_ratio = 0.0

    @property
    def state(self) -> GestureState:
        return self.classifier.state

    @property
    def detected(self) -> bool:
        return self._detected

    @property
    def missed_frames(self) -> int:
        return self._missed

    @property
    def position_history(self) -> Tuple[Point2, ...]:
        return tuple(self._positions)

    @property
    def ratio_history(self) -> Tuple[float, ...]:
        return tuple(self._ratios)

    def accepts(self, now: float) -> bool:
        return self._last_poll is None or now - self._last_poll >= self.interval_s

    def mark_polled(self, now: float) -> None:
        """Start a new throttle interval at `now` without feeding a frame."""
        self._last_poll = now

    def process(self, frame: Optional[RawHandFrame], now: float) -> Optional[GestureSample]:
        """Throttled entry point. Returns None when the frame is dropped."""
        if not self.accepts(now):
            return None
        self._last_poll = now
        return self.update(frame)

    def update(self, frame: Optional[RawHandFrame]) -> GestureSample:
        measured = self._measure(frame)
        if measured is None:
            return self._miss()

        position, ratio = measured
        self._missed = 0
        if not self._detected:
            log.info("hand detected")
        self._detected = True

        self._positions.append(position)
        self._last_position = mean_point(list(self._positions))

        self._ratios.append(ratio)
        self._last_ratio = sum(self._ratios) / len(self._ratios)

        prev = self.classifier.state
        state = self.classifier.update(self._last_ratio)
        if state is not prev:
            log.info("gesture %s -> %s (ratio %.2f)", prev.value, state.value, self._last_ratio)

        return GestureSample(
            position=self._last_position,
            openness_ratio=self._last_ratio,
            detected=True,
            state=state,
        )

    def reset(self) -> None:
        self.classifier.reset()
        self._positions.clear()
        self._ratios.clear()
        self._detected = False
        self._last_ratio = 0.0

    def _miss(self) -> GestureSample:
        self._missed += 1
        if self._detected and self._missed >= self.miss_limit:
            log.info("hand lost after %d missed frames", self._missed)
            self.reset()
        return GestureSample(
            position=self._last_position,
            openness_ratio=self._last_ratio,
            detected=self._detected,
            state=self.classifier.state,
        )

    def _measure(self, frame: Optional[RawHandFrame]) -> Optional[Tuple[Point2, float]]:
        if frame is None or not frame.has_hand:
            return None
        if frame.width <= 0 or frame.height <= 0:
            return None
        lm = np.asarray(frame.landmarks, dtype=np.float64)
        if lm.ndim != 2 or lm.shape[0] <= max(_USED_LANDMARKS) or lm.shape[1] < 2:
            return None
        if not np.all(np.isfinite(lm[list(_USED_LANDMARKS), :2])):
            return None
        position = wrist_position(lm, frame.width, frame.height)
        ratio = openness_ratio(lm)
        if not (math.isfinite(position[0]) and math.isfinite(position[1]) and math.isfinite(ratio)):
            return None
        return position, ratio


class GesturePoller:
    """
    Fire-and-forget polling of a hand detector, decoupled from the frame tick.

    `submit()` hands a camera frame to the detector on a worker when the
    throttle allows and nothing is in flight. The worker's result is latched;
    `collect()` (called from the tick) feeds it to the `SignalProcessor`.
    After `close()`, results of polls still in flight are discarded.

    Any exception from the detector puts the poller in degraded mode
    (`available` is False) until a later poll succeeds; anything other than
    a `PoseEstimationError` is also logged with its traceback. Failed polls
    count against the throttle like successful ones.
    """

    def __init__(
        self,
        detector,
        processor: Optional[SignalProcessor] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._detector = detector
        self.processor = processor or SignalProcessor()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="treemotion-pose")
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self._closed = False
        self._pending = False
        self._latched: Optional[Tuple[RawHandFrame, float]] = None
        self._error: Optional[Tuple[BaseException, float]] = None
        self.available = True
        self.last_frame: Optional[RawHandFrame] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, frame_bgr, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        with self._lock:
            if self._closed or self._pending or not self.processor.accepts(now):
                return False
            self._pending = True
            generation = self._generation

        future = self._executor.submit(self._detector.detect, frame_bgr)
        future.add_done_callback(lambda f: self._on_done(f, generation, now))
        return True

    def _on_done(self, future: Future, generation: int, ts: float) -> None:
        with self._lock:
            if self._closed or generation != self._generation:
                return
            if future.cancelled():
                self.processor.mark_polled(ts)
                self._pending = False
                return
            err = future.exception()
            if err is not None:
                self._error = (err, ts)
                self._latched = None
            else:
                self._latched = (future.result(), ts)

    def collect(self) -> Optional[GestureSample]:
        with self._lock:
            if self._closed:
                return None
            latched, err = self._latched, self._error
            if latched is None and err is None:
                return None
            self._latched = None
            self._error = None
            self._pending = False

        if err is not None:
            exc, ts = err
            # A failed poll still uses up its throttle slot.
            self.processor.mark_polled(ts)
            if not isinstance(exc, PoseEstimationError):
                log.error("hand detector raised %s", type(exc).__name__, exc_info=exc)
            elif self.available:
                log.warning("gesture input degraded: %s", exc)
            self.available = False
            return None

        if not self.available:
            log.info("gesture input recovered")
        self.available = True
        raw, ts = latched
        self.last_frame = raw
        return self.processor.process(raw, ts)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            self._latched = None
            self._error = None
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self._detector, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "GesturePoller":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
