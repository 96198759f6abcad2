from __future__ import annotations

import math
from concurrent.futures import Executor, Future

import numpy as np
import pytest

from treemotion.config import GroupConfig, SceneConfig
from treemotion.types import RawHandFrame


def make_hand(ratio: float, wrist=(320.0, 240.0), width=640, height=480, base=50.0) -> RawHandFrame:
    """21 landmarks whose fingertip/knuckle distance ratio is exactly `ratio`."""
    pts = np.zeros((21, 3))
    pts[:, 0], pts[:, 1] = wrist
    for k, (b, t) in enumerate(zip((5, 9, 13, 17), (8, 12, 16, 20))):
        angle = -math.pi / 2 + (k - 1.5) * 0.3
        d = np.array([math.cos(angle), math.sin(angle)])
        pts[b, :2] = np.asarray(wrist) + d * base
        pts[t, :2] = np.asarray(wrist) + d * base * ratio
    return RawHandFrame(landmarks=pts, width=width, height=height)


class SyncExecutor(Executor):
    def submit(self, fn, *args, **kwargs):
        f = Future()
        try:
            f.set_result(fn(*args, **kwargs))
        except Exception as e:
            f.set_exception(e)
        return f


class ManualExecutor(Executor):
    """Holds submitted work until `finish()` runs it."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        f = Future()
        self.jobs.append((f, fn, args, kwargs))
        return f

    def finish(self):
        jobs, self.jobs = self.jobs, []
        for f, fn, args, kwargs in jobs:
            try:
                f.set_result(fn(*args, **kwargs))
            except Exception as e:
                f.set_exception(e)


@pytest.fixture
def hand():
    return make_hand


@pytest.fixture
def small_scene() -> SceneConfig:
    return SceneConfig(
        (
            GroupConfig("SNOW", 50, seed=1),
            GroupConfig("TOP_STAR", 1, palette=("#FFD700",), seed=2),
            GroupConfig("FOLIAGE", 200, palette=("#022b1c", "#217a46"), seed=3),
            GroupConfig("SPIRAL_LIGHT", 30, palette=("#fffae0",), seed=4),
            GroupConfig("BALL", 60, scale=0.5, palette=("#8B0000", "#D4AF37", "#C0C0C0"), seed=5),
            GroupConfig("STAR", 25, scale=0.5, palette=("#FFD700",), seed=6),
            GroupConfig("PHOTO", 10, seed=7),
        )
    )
