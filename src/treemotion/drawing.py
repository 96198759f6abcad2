from __future__ import annotations

import math
from typing import Optional, Tuple

import cv2
import numpy as np

from .detector import HAND_CONNECTIONS
from .types import CameraPose, FrameOutput, GestureSample, RawHandFrame


# Groups larger than this are splatted as single pixels instead of circles.
POINT_SPLAT_THRESHOLD = 2000


def _normalize(v: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(v)
    return v / n if n > 0 else v


def project_points(
    points: np.ndarray,
    camera: CameraPose,
    width: int,
    height: int,
    fov_deg: float = 45.0,
    near: float = 0.1,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Perspective-project world points for a camera looking at `camera.target`.

    Returns pixel coordinates (N, 2) as int32, view depth (N,) and a mask of
    points in front of the near plane.
    """
    eye = np.asarray(camera.position, dtype=np.float64)
    forward = _normalize(np.asarray(camera.target, dtype=np.float64) - eye)
    right = _normalize(np.cross(forward, np.array([0.0, 1.0, 0.0])))
    if not np.any(right):
        right = np.array([1.0, 0.0, 0.0])
    up = np.cross(right, forward)

    rel = np.asarray(points, dtype=np.float64) - eye
    x = rel @ right
    y = rel @ up
    z = rel @ forward
    visible = z > near
    f = (height / 2.0) / math.tan(math.radians(fov_deg) / 2.0)
    safe_z = np.where(visible, z, 1.0)
    u = width / 2.0 + f * x / safe_z
    v = height / 2.0 - f * y / safe_z
    return np.stack([u, v], axis=1).astype(np.int32), z, visible


def render_frame(canvas_bgr, frame: FrameOutput, fov_deg: float = 45.0):
    """Draw every group of `frame` onto `canvas_bgr`, far particles first."""
    h, w = canvas_bgr.shape[:2]
    f = (h / 2.0) / math.tan(math.radians(fov_deg) / 2.0)

    for group in frame.groups:
        if len(group) == 0:
            continue
        uv, depth, visible = project_points(group.positions, frame.camera, w, h, fov_deg)
        inside = visible & (uv[:, 0] >= 0) & (uv[:, 0] < w) & (uv[:, 1] >= 0) & (uv[:, 1] < h)
        if not np.any(inside):
            continue
        bgr = np.clip(group.colors[:, ::-1] * 255.0, 0, 255).astype(np.uint8)

        if len(group) > POINT_SPLAT_THRESHOLD:
            idx = np.nonzero(inside)[0]
            canvas_bgr[uv[idx, 1], uv[idx, 0]] = bgr[idx]
            continue

        order = np.argsort(-depth)
        for i in order:
            if not inside[i]:
                continue
            radius = int(np.clip(float(group.scales[i].mean()) * f / depth[i] * 0.5, 1, 24))
            color = tuple(int(c) for c in bgr[i])
            cv2.circle(canvas_bgr, (int(uv[i, 0]), int(uv[i, 1])), radius, color, -1, cv2.LINE_AA)
    return canvas_bgr


def draw_hand(canvas_bgr, raw: Optional[RawHandFrame], color=(0, 255, 255)):
    """Overlay the detected landmarks, rescaled from the camera frame to the canvas."""
    if raw is None or raw.landmarks is None:
        return canvas_bgr
    h, w = canvas_bgr.shape[:2]
    sx = w / float(raw.width)
    sy = h / float(raw.height)
    pts = [(int(p[0] * sx), int(p[1] * sy)) for p in raw.landmarks]
    for a, b in HAND_CONNECTIONS:
        if a < len(pts) and b < len(pts):
            cv2.line(canvas_bgr, pts[a], pts[b], color, 2, cv2.LINE_AA)
    for pt in pts:
        cv2.circle(canvas_bgr, pt, 3, (40, 255, 120), -1, lineType=cv2.LINE_AA)
    return canvas_bgr


def draw_text(frame, text: str, org: Tuple[int, int], color=(255, 255, 255), scale=0.6, thickness=2):
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)
    return frame


def draw_status(canvas_bgr, frame: FrameOutput, sample: Optional[GestureSample] = None):
    if not frame.gesture_available:
        hand = "SENSOR OFF"
    elif sample is None or not sample.detected:
        hand = "NO HAND"
    else:
        hand = sample.state.value
    lines = [
        f"mix {frame.mix:.2f} -> {frame.target_mix}",
        f"{frame.mode.value}  rot {frame.rotation_y:+.2f}",
        f"hand: {hand}",
    ]
    for i, line in enumerate(lines):
        draw_text(canvas_bgr, line, (12, 28 + i * 24))
    if frame.overlay_visible:
        h, w = canvas_bgr.shape[:2]
        shade = canvas_bgr.copy()
        cv2.rectangle(shade, (0, 0), (w, h), (0, 0, 0), -1)
        cv2.addWeighted(shade, 0.6, canvas_bgr, 0.4, 0, dst=canvas_bgr)
        draw_text(canvas_bgr, "decorating...", (w // 2 - 80, h // 2), color=(55, 175, 212), scale=0.9)
    return canvas_bgr
