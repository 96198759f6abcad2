from __future__ import annotations

import logging
import math
from typing import Optional, Sequence, Tuple

from . import config
from .types import CameraPose, OrientationMode, OrientationState, Point2, Vec3
from .utils import clamp, damp


log = logging.getLogger(__name__)


class OrientationController:
    """
    Rotation, zoom and camera for the tree.

    Modes: IDLE_SPIN (inertial spin relaxing to a slow base rate), DRAGGING
    (primary pointer turns the tree directly) and GRABBED (live hand
    position steers the rotation). Grab is entered on the rising edge of
    hand detection and takes priority over the pointer; the offset captured
    at that edge keeps the rotation continuous across the handoff.

    Rotation velocity is in radians per tick, as is the base spin.
    """

    def __init__(
        self,
        rotation_y: float = 0.0,
        zoom: float = config.ZOOM_DEFAULT,
        viewport: Optional[Tuple[int, int]] = None,
    ) -> None:
        self.rotation_y = rotation_y
        self.velocity = config.BASE_SPIN
        self.zoom_target = clamp(zoom, *config.ZOOM_RANGE)
        self.is_dragging = False
        self.grab_offset = 0.0
        self._viewport = viewport

        self._hand_detected = False
        self._was_detected = False
        self._input_target: Point2 = (0.0, 0.0)
        self._input: Point2 = (0.0, 0.0)
        self._camera: Vec3 = (0.0, 0.0, self.zoom_target)

        self._last_pointer_x = 0.0
        self._touch_distance: Optional[float] = None

    # -- state -------------------------------------------------------------

    @property
    def is_grabbed(self) -> bool:
        return self._was_detected

    @property
    def mode(self) -> OrientationMode:
        if self._was_detected:
            return OrientationMode.GRABBED
        if self.is_dragging:
            return OrientationMode.DRAGGING
        return OrientationMode.IDLE_SPIN

    @property
    def pinching(self) -> bool:
        return self._touch_distance is not None

    @property
    def smoothed_input(self) -> Point2:
        return self._input

    @property
    def camera(self) -> CameraPose:
        return CameraPose(position=self._camera)

    def snapshot(self) -> OrientationState:
        return OrientationState(
            rotation_y=self.rotation_y,
            rotation_velocity=self.velocity,
            zoom_target=self.zoom_target,
            is_dragging=self.is_dragging,
            is_grabbed=self.is_grabbed,
            grab_offset=self.grab_offset,
            mode=self.mode,
        )

    # -- input events --------------------------------------------------------

    def set_gesture(self, position: Point2, detected: bool) -> None:
        """Latch the routed hand position; the mode switch happens on the next update."""
        self._hand_detected = bool(detected)
        if detected:
            self._input_target = (float(position[0]), float(position[1]))

    def pointer_down(self, x: float, y: float = 0.0, primary: bool = True) -> None:
        if not primary or self.is_grabbed:
            return
        self.is_dragging = True
        self._last_pointer_x = x
        self.velocity = 0.0

    def pointer_move(self, x: float, y: float = 0.0, primary: bool = True) -> None:
        if not primary:
            return
        if self._viewport is not None and not self.is_grabbed:
            w, h = self._viewport
            if w > 0 and h > 0:
                self._input_target = (clamp(x / w * 2.0 - 1.0, -1.0, 1.0), clamp(1.0 - y / h * 2.0, -1.0, 1.0))
        if not self.is_dragging or self.is_grabbed or self.pinching:
            self._last_pointer_x = x
            return
        amount = (x - self._last_pointer_x) * config.DRAG_RADIANS_PER_PX
        self._last_pointer_x = x
        self.rotation_y += amount
        self.velocity = amount

    def pointer_up(self, primary: bool = True) -> None:
        # Also used for pointer leave/cancel.
        if primary:
            self.is_dragging = False

    def wheel(self, delta_y: float) -> None:
        self.zoom_target = clamp(self.zoom_target + delta_y * config.WHEEL_ZOOM_SPEED, *config.ZOOM_RANGE)

    def pinch(self, delta_distance: float) -> None:
        """Positive delta (fingers moved together) zooms out."""
        self.zoom_target = clamp(self.zoom_target + delta_distance * config.PINCH_ZOOM_SPEED, *config.ZOOM_RANGE)

    def touch_start(self, points: Sequence[Point2]) -> None:
        if len(points) == 2:
            self._touch_distance = _distance(points[0], points[1])

    def touch_move(self, points: Sequence[Point2]) -> None:
        if len(points) != 2:
            return
        d = _distance(points[0], points[1])
        if self._touch_distance is not None:
            self.pinch(self._touch_distance - d)
        self._touch_distance = d

    def touch_end(self) -> None:
        self._touch_distance = None

    # -- tick ------------------------------------------------------------------

    def update(self, dt: float) -> float:
        dt = clamp(dt, 0.0, config.MAX_DT)

        # Parallax input lags the routed position to hide detector jitter.
        ix = damp(self._input[0], self._input_target[0], config.INPUT_SMOOTHING_RATE, dt)
        iy = damp(self._input[1], self._input_target[1], config.INPUT_SMOOTHING_RATE, dt)
        self._input = (ix, iy)

        sx, sy = config.PARALLAX_SCALE
        target = (ix * sx, iy * sy, self.zoom_target + abs(ix) * config.PARALLAX_ZOOM)
        self._camera = tuple(
            damp(c, t, config.CAMERA_SMOOTHING_RATE, dt) for c, t in zip(self._camera, target)
        )

        if self._hand_detected:
            hand_rotation = ix * config.HAND_ROTATION_FACTOR
            if not self._was_detected:
                self.grab_offset = self.rotation_y - hand_rotation
                self.velocity = 0.0
                self.is_dragging = False
                self._was_detected = True
                log.debug("grab at rotation %.3f (offset %.3f)", self.rotation_y, self.grab_offset)
            prev = self.rotation_y
            self.rotation_y = damp(prev, hand_rotation + self.grab_offset, config.GRAB_SMOOTHING_RATE, dt)
            self.velocity = self.rotation_y - prev
            return self.rotation_y

        if self._was_detected:
            self._was_detected = False
            if abs(self.velocity) < config.GRAB_RELEASE_EPSILON:
                self.velocity = config.BASE_SPIN
            log.debug("release with velocity %.5f", self.velocity)

        if not self.is_dragging:
            self.rotation_y += self.velocity
            self.velocity = damp(self.velocity, config.BASE_SPIN, config.SPIN_RELAX_RATE, dt)
        return self.rotation_y


def _distance(a: Point2, b: Point2) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])
