from __future__ import annotations

import numpy as np

from conftest import make_hand
from treemotion.choreographer import Choreographer
from treemotion.drawing import draw_hand, draw_status, project_points, render_frame
from treemotion.types import CameraPose


def test_origin_projects_to_centre():
    cam = CameraPose(position=(0.0, 0.0, 32.0))
    uv, depth, visible = project_points(np.zeros((1, 3)), cam, 640, 480)
    assert tuple(uv[0]) == (320, 240)
    assert depth[0] == 32.0
    assert visible[0]


def test_points_behind_camera_are_hidden():
    cam = CameraPose(position=(0.0, 0.0, 10.0))
    _, _, visible = project_points(np.array([[0.0, 0.0, 20.0]]), cam, 640, 480)
    assert not visible[0]


def test_higher_points_land_higher_on_screen():
    cam = CameraPose(position=(0.0, 0.0, 32.0))
    uv, _, _ = project_points(np.array([[0.0, 5.0, 0.0], [0.0, -5.0, 0.0]]), cam, 640, 480)
    assert uv[0, 1] < uv[1, 1]


def test_render_frame_draws_particles(small_scene):
    frame = Choreographer(small_scene).tick(0.016)
    canvas = np.zeros((240, 320, 3), dtype=np.uint8)
    render_frame(canvas, frame)
    assert canvas.any()


def test_draw_hand_and_status():
    canvas = np.zeros((240, 320, 3), dtype=np.uint8)
    draw_hand(canvas, make_hand(2.0))
    assert canvas.any()

    blank = np.zeros_like(canvas)
    draw_hand(blank, None)
    assert not blank.any()


def test_status_overlay_darkens_during_upload(small_scene):
    c = Choreographer(small_scene)
    c.add_images(["a.jpg"])
    frame = c.tick(0.016)
    canvas = np.full((240, 320, 3), 200, dtype=np.uint8)
    draw_status(canvas, frame)
    assert canvas[-1, -1].max() < 200
