from __future__ import annotations

import argparse
import glob
import os
import platform
import sys
import time

import cv2
import numpy as np

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from treemotion import config  # noqa: E402
from treemotion.choreographer import Choreographer  # noqa: E402
from treemotion.detector import HandLandmarkDetector  # noqa: E402
from treemotion.drawing import draw_hand, draw_status, draw_text, render_frame  # noqa: E402
from treemotion.errors import PoseEstimationError  # noqa: E402
from treemotion.gesture import GesturePoller  # noqa: E402
from treemotion.orientation import OrientationController  # noqa: E402


def _install_mouse(window: str, choreo: Choreographer) -> None:
    def on_mouse(event, x, y, flags, _param):
        if event == cv2.EVENT_LBUTTONDOWN:
            choreo.on_pointer_down(x, y)
        elif event == cv2.EVENT_MOUSEMOVE:
            choreo.on_pointer_move(x, y)
        elif event == cv2.EVENT_LBUTTONUP:
            choreo.on_pointer_up(x, y)
        elif event == cv2.EVENT_MOUSEWHEEL:
            # OpenCV reports wheel-up as positive; browsers report it as negative deltaY.
            choreo.on_wheel(-cv2.getMouseWheelDelta(flags) / 120.0 * 100.0)

    cv2.setMouseCallback(window, on_mouse)


def main() -> int:
    ap = argparse.ArgumentParser(description="Gesture-driven particle tree preview.")
    ap.add_argument("--camera", type=int, default=config.CAMERA_INDEX, help="Camera index (default: 0)")
    ap.add_argument("--width", type=int, default=config.CAMERA_WIDTH, help="Capture/preview width")
    ap.add_argument("--height", type=int, default=config.CAMERA_HEIGHT, help="Capture/preview height")
    ap.add_argument("--foliage", type=int, default=20000, help="Foliage particle count")
    ap.add_argument("--seed", type=int, default=0, help="Placement seed")
    ap.add_argument("--photos", default=None, help="Directory of images added with 'u'")
    ap.add_argument("--log-level", default="INFO", help="Logging level")
    ap.add_argument(
        "--no-mirror",
        action="store_true",
        help="Disable horizontal mirroring of the camera inset",
    )
    args = ap.parse_args()
    config.configure_logging(args.log_level)

    if platform.system() == "Darwin":
        cap = cv2.VideoCapture(args.camera, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        raise RuntimeError(
            f"Could not open camera index {args.camera}. "
            "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
        )
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, args.width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, args.height)

    scene = config.default_scene(foliage_count=args.foliage, seed=args.seed)
    choreo = Choreographer(scene, orientation=OrientationController(viewport=(args.width, args.height)))

    poller = None
    try:
        poller = GesturePoller(HandLandmarkDetector())
    except PoseEstimationError as e:
        print(f"hand tracking disabled: {e}")
        choreo.set_gesture_available(False)

    photos = sorted(glob.glob(os.path.join(args.photos, "*"))) if args.photos else []

    window = "treemotion"
    cv2.namedWindow(window)
    _install_mouse(window, choreo)

    sample = None
    raw_for_overlay = None
    last = time.monotonic()
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break

            now = time.monotonic()
            dt, last = now - last, now

            if poller is not None:
                # Mirroring happens in the signal processor, so the detector sees the raw frame.
                poller.submit(frame, now)
                collected = poller.collect()
                choreo.set_gesture_available(poller.available)
                if collected is not None:
                    sample = collected
                    raw_for_overlay = poller.last_frame
                    choreo.on_gesture_sample(sample)

            out = choreo.tick(dt)

            canvas = np.zeros((args.height, args.width, 3), dtype=np.uint8)
            render_frame(canvas, out)
            inset_w, inset_h = args.width // 5, args.height // 5
            inset = cv2.resize(frame, (inset_w, inset_h))
            draw_hand(inset, raw_for_overlay)
            if not args.no_mirror:
                inset = cv2.flip(inset, 1)
            canvas[-inset_h - 10 : -10, -inset_w - 10 : -10] = inset
            draw_status(canvas, out, sample)
            draw_text(canvas, "space: toggle | u: add photos | c: clear | q: quit", (12, args.height - 16), scale=0.5)

            cv2.imshow(window, canvas)
            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                break
            if key == ord(" "):
                choreo.toggle()
            elif key == ord("u") and photos:
                choreo.add_images(photos)
            elif key == ord("c"):
                choreo.clear_images()
    finally:
        if poller is not None:
            poller.close()
        cap.release()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
