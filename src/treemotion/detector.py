from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from . import config
from .errors import PoseEstimationError
from .model_assets import ensure_hand_landmarker_task
from .types import RawHandFrame


log = logging.getLogger(__name__)


def _chain(*idx: int) -> List[Tuple[int, int]]:
    return list(zip(idx, idx[1:]))


# Skeleton edges of the 21-point MediaPipe hand, finger by finger, then the palm rim.
HAND_CONNECTIONS: List[Tuple[int, int]] = (
    _chain(0, 1, 2, 3, 4)
    + _chain(0, 5, 6, 7, 8)
    + _chain(9, 10, 11, 12)
    + _chain(13, 14, 15, 16)
    + _chain(0, 17, 18, 19, 20)
    + _chain(5, 9, 13, 17)
)


class _SolutionsHands:
    """Legacy `mp.solutions.hands` pipeline, tracking one hand."""

    def __init__(self, mp, model_complexity: int, min_det: float, min_track: float) -> None:
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=1,
            model_complexity=model_complexity,
            min_detection_confidence=min_det,
            min_tracking_confidence=min_track,
        )

    def landmarks(self, frame_rgb) -> Optional[Sequence]:
        results = self._hands.process(frame_rgb)
        if not results.multi_hand_landmarks:
            return None
        return results.multi_hand_landmarks[0].landmark

    def close(self) -> None:
        self._hands.close()


class _TasksHands:
    """
    Tasks `HandLandmarker` in VIDEO mode, for mediapipe builds without
    `mp.solutions`. Needs the `.task` model on disk and strictly increasing
    timestamps.
    """

    def __init__(self, mp, model_path: str, min_det: float, min_track: float, frame_interval_ms: int) -> None:
        try:
            from mediapipe.tasks.python import BaseOptions  # type: ignore
            from mediapipe.tasks.python.vision import HandLandmarker, HandLandmarkerOptions, RunningMode  # type: ignore
        except ImportError:  # pragma: no cover
            from mediapipe.tasks import python as tasks  # type: ignore

            BaseOptions = tasks.BaseOptions
            HandLandmarker = tasks.vision.HandLandmarker
            HandLandmarkerOptions = tasks.vision.HandLandmarkerOptions
            RunningMode = tasks.vision.RunningMode

        options = HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=ensure_hand_landmarker_task(model_path)),
            running_mode=RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=min_det,
            min_tracking_confidence=min_track,
        )
        self._mp = mp
        self._landmarker = HandLandmarker.create_from_options(options)
        self._step_ms = frame_interval_ms
        self._ts_ms = 0

    def landmarks(self, frame_rgb) -> Optional[Sequence]:
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=frame_rgb)
        self._ts_ms += self._step_ms
        result = self._landmarker.detect_for_video(image, self._ts_ms)
        hands = getattr(result, "hand_landmarks", None) or []
        return hands[0] if hands else None

    def close(self) -> None:
        self._landmarker.close()


class HandLandmarkDetector:
    """
    Single-hand landmark detector on MediaPipe.

    `detect()` takes a **BGR** frame (OpenCV default) and returns the 21
    landmarks in pixel coordinates, or an empty `RawHandFrame`. Model load and
    inference failures surface as `PoseEstimationError`.
    """

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = config.MP_MIN_DETECTION_CONF,
        min_tracking_confidence: float = config.MP_MIN_TRACKING_CONF,
        tasks_model_path: str = config.TASKS_MODEL_PATH,
        frame_interval_ms: int = 33,
    ) -> None:
        try:
            import mediapipe as mp  # type: ignore

            if hasattr(mp, "solutions"):
                self._backend = _SolutionsHands(mp, model_complexity, min_detection_confidence, min_tracking_confidence)
            else:
                log.info("mediapipe has no solutions API, using Tasks HandLandmarker")
                self._backend = _TasksHands(
                    mp, tasks_model_path, min_detection_confidence, min_tracking_confidence, frame_interval_ms
                )
        except FileNotFoundError as e:
            raise PoseEstimationError(f"hand landmark model missing at {tasks_model_path}: {e}") from e
        except Exception as e:
            raise PoseEstimationError(f"could not initialise MediaPipe hand tracking: {e}") from e

    def detect(self, frame_bgr) -> RawHandFrame:
        try:
            h, w = frame_bgr.shape[:2]
            found = self._backend.landmarks(cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB))
        except Exception as e:
            raise PoseEstimationError(f"hand landmark inference failed: {e}") from e
        if found is None:
            return RawHandFrame.empty(w, h)
        pts = np.array([(lm.x * w, lm.y * h, getattr(lm, "z", 0.0)) for lm in found], dtype=np.float64)
        return RawHandFrame(landmarks=pts, width=w, height=h)

    def close(self) -> None:
        self._backend.close()

    def __enter__(self) -> "HandLandmarkDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
