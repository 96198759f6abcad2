from __future__ import annotations

import argparse
import os
import sys

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from treemotion.detector import HandLandmarkDetector  # noqa: E402
from treemotion.drawing import draw_hand  # noqa: E402
from treemotion.gesture import SignalProcessor  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Classify the hand in a still image as OPEN/CLOSED.")
    ap.add_argument("--image", required=True, help="Path to input image")
    ap.add_argument("--out", default=None, help="Optional path for the annotated image")
    args = ap.parse_args()

    frame = cv2.imread(args.image)
    if frame is None:
        raise RuntimeError(f"Could not read image: {args.image}")

    with HandLandmarkDetector() as detector:
        raw = detector.detect(frame)

    sample = SignalProcessor(interval_s=0.0).update(raw)

    if args.out:
        ok = cv2.imwrite(args.out, draw_hand(frame.copy(), raw))
        if not ok:
            raise RuntimeError(f"Could not write output image: {args.out}")

    if not sample.detected:
        print("no hand")
        return 0
    print(
        f"state={sample.state.value} ratio={sample.openness_ratio:.2f} "
        f"position=({sample.position[0]:+.2f}, {sample.position[1]:+.2f})"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
