from __future__ import annotations

import pytest

from treemotion import config
from treemotion.orientation import OrientationController
from treemotion.types import OrientationMode


def test_idle_spin_advances_and_relaxes_to_base():
    o = OrientationController()
    o.velocity = 0.05
    r0 = o.rotation_y
    o.update(0.016)
    assert o.rotation_y == pytest.approx(r0 + 0.05)
    for _ in range(2000):
        o.update(0.1)
    assert o.velocity == pytest.approx(config.BASE_SPIN, abs=1e-6)
    assert o.mode is OrientationMode.IDLE_SPIN


def test_drag_then_inertia():
    o = OrientationController()
    o.pointer_down(100)
    assert o.mode is OrientationMode.DRAGGING
    assert o.velocity == 0.0

    before = o.rotation_y
    o.pointer_move(140)
    assert o.rotation_y == pytest.approx(before + 40 * config.DRAG_RADIANS_PER_PX)
    o.update(0.016)
    # No inertial spin while the pointer is held.
    assert o.rotation_y == pytest.approx(before + 40 * config.DRAG_RADIANS_PER_PX)

    o.pointer_move(150)
    o.pointer_up()
    assert o.mode is OrientationMode.IDLE_SPIN
    assert o.velocity == pytest.approx(10 * config.DRAG_RADIANS_PER_PX)
    r = o.rotation_y
    o.update(0.016)
    assert o.rotation_y == pytest.approx(r + 10 * config.DRAG_RADIANS_PER_PX)


def test_non_primary_pointer_ignored():
    o = OrientationController()
    o.pointer_down(0, primary=False)
    assert not o.is_dragging


def test_grab_handoff_is_continuous():
    o = OrientationController(rotation_y=1.3)
    for _ in range(30):
        o.update(0.016)
    before = o.rotation_y

    o.set_gesture((0.4, -0.2), True)
    o.update(0.016)
    assert o.mode is OrientationMode.GRABBED
    assert abs(o.rotation_y - before) < 1e-9


def test_grab_follows_hand():
    o = OrientationController()
    o.set_gesture((0.0, 0.0), True)
    o.update(0.016)
    start = o.rotation_y
    o.set_gesture((0.5, 0.0), True)
    for _ in range(300):
        o.update(0.05)
    assert o.rotation_y - start == pytest.approx(0.5 * config.HAND_ROTATION_FACTOR, abs=1e-3)


def test_release_with_no_motion_restores_spin():
    o = OrientationController()
    o.set_gesture((0.1, 0.0), True)
    for _ in range(400):
        o.update(0.05)
    assert abs(o.velocity) < config.GRAB_RELEASE_EPSILON
    o.set_gesture((0.1, 0.0), False)
    o.update(0.016)
    assert o.mode is OrientationMode.IDLE_SPIN
    assert o.velocity > 0


def test_grab_overrides_drag():
    o = OrientationController()
    o.pointer_down(10)
    o.set_gesture((0.0, 0.0), True)
    o.update(0.016)
    assert o.mode is OrientationMode.GRABBED
    assert not o.is_dragging
    r = o.rotation_y
    o.pointer_move(500)
    assert o.rotation_y == r
    o.pointer_down(20)
    assert not o.is_dragging


def test_grab_offset_captured_once_per_grab():
    o = OrientationController(rotation_y=0.7)
    o.set_gesture((0.2, 0.0), True)
    o.update(0.016)
    offset = o.grab_offset
    for x in (0.3, 0.5, -0.4):
        o.set_gesture((x, 0.0), True)
        o.update(0.016)
        assert o.grab_offset == offset


def test_wheel_and_pinch_zoom_are_clamped():
    o = OrientationController()
    o.wheel(100)
    assert o.zoom_target == pytest.approx(config.ZOOM_DEFAULT + 2.0)
    o.wheel(1e6)
    assert o.zoom_target == config.ZOOM_RANGE[1]
    o.pinch(-1e6)
    assert o.zoom_target == config.ZOOM_RANGE[0]


def test_touch_pinch_suppresses_drag():
    o = OrientationController()
    o.pointer_down(0)
    o.touch_start([(0, 0), (100, 0)])
    o.touch_move([(0, 0), (80, 0)])
    assert o.zoom_target == pytest.approx(config.ZOOM_DEFAULT + 20 * config.PINCH_ZOOM_SPEED)
    r = o.rotation_y
    o.pointer_move(300)
    assert o.rotation_y == r
    o.touch_end()
    o.pointer_move(310)
    assert o.rotation_y == pytest.approx(r + 10 * config.DRAG_RADIANS_PER_PX)


def test_camera_follows_zoom_and_parallax():
    o = OrientationController()
    o.wheel(-500)  # zoom in to 22
    o.set_gesture((0.5, 0.5), True)
    for _ in range(300):
        o.update(0.05)
    x, y, z = o.camera.position
    assert x == pytest.approx(2.0, abs=1e-3)
    assert y == pytest.approx(1.0, abs=1e-3)
    assert z == pytest.approx(22.0 + 1.0, abs=1e-3)


def test_position_kept_after_loss():
    o = OrientationController()
    o.set_gesture((0.5, 0.0), True)
    for _ in range(200):
        o.update(0.05)
    o.set_gesture((0.0, 0.0), False)
    for _ in range(10):
        o.update(0.05)
    assert o.smoothed_input[0] == pytest.approx(0.5, abs=1e-3)


def test_pointer_steers_parallax_with_viewport():
    o = OrientationController(viewport=(640, 480))
    o.pointer_move(640, 0)
    for _ in range(300):
        o.update(0.05)
    assert o.smoothed_input == pytest.approx((1.0, 1.0), abs=1e-3)


def test_pointer_parallax_needs_viewport():
    o = OrientationController()
    o.pointer_move(640, 0)
    for _ in range(50):
        o.update(0.05)
    assert o.smoothed_input == (0.0, 0.0)


def test_snapshot_reflects_controller():
    o = OrientationController(rotation_y=0.5)
    o.pointer_down(0)
    o.wheel(100)
    s = o.snapshot()
    assert s.rotation_y == 0.5
    assert s.rotation_velocity == 0.0
    assert s.zoom_target == pytest.approx(config.ZOOM_DEFAULT + 2.0)
    assert s.is_dragging and not s.is_grabbed
    assert s.mode is OrientationMode.DRAGGING
