from __future__ import annotations

from typing import Sequence, Tuple

from .errors import ConfigurationError


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def damp(current: float, target: float, rate: float, dt: float) -> float:
    """Move `current` toward `target` by a `rate * dt` fraction, never past it."""
    return current + (target - current) * clamp(rate * dt, 0.0, 1.0)


def mean_point(points: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    if not points:
        return (0.0, 0.0)
    xs = 0.0
    ys = 0.0
    for x, y in points:
        xs += x
        ys += y
    n = len(points)
    return (xs / n, ys / n)


def hex_to_rgb(value: str) -> Tuple[float, float, float]:
    """Parse `#RRGGBB` into floats in [0, 1]."""
    s = value.strip().lstrip("#")
    if len(s) != 6:
        raise ConfigurationError(f"Invalid colour '{value}': expected #RRGGBB")
    try:
        r, g, b = (int(s[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError as e:
        raise ConfigurationError(f"Invalid colour '{value}': expected #RRGGBB") from e
    return (r / 255.0, g / 255.0, b / 255.0)
