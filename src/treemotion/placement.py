from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np

from . import config
from .config import GroupConfig
from .errors import ConfigurationError
from .types import DECORATIVE_TYPES, OrnamentType, ParticleSet


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class _OrnamentParams:
    type_index: int
    push_out: float
    base_scale: float


# Phase index spreads the six decorative groups over 360 degrees.
ORNAMENT_PARAMS: Dict[OrnamentType, _OrnamentParams] = {
    OrnamentType.BALL: _OrnamentParams(type_index=0, push_out=1.08, base_scale=1.0),
    OrnamentType.BOX: _OrnamentParams(type_index=1, push_out=1.08, base_scale=1.0),
    OrnamentType.STAR: _OrnamentParams(type_index=2, push_out=1.15, base_scale=0.7),
    OrnamentType.CANDY: _OrnamentParams(type_index=3, push_out=1.08, base_scale=0.7),
    OrnamentType.CRYSTAL: _OrnamentParams(type_index=4, push_out=1.08, base_scale=0.6),
    OrnamentType.PHOTO: _OrnamentParams(type_index=5, push_out=1.15, base_scale=1.0),
}


@dataclass
class _Layout:
    formed: np.ndarray
    chaos: np.ndarray
    formed_scale: np.ndarray
    chaos_scale: np.ndarray
    rotation: np.ndarray
    chaos_tilt: np.ndarray
    color_index: np.ndarray
    colors: np.ndarray
    attribute: np.ndarray
    velocity: np.ndarray


def conic_progress(count: int) -> np.ndarray:
    """
    Fraction of the way from apex to base for each ornament index.

    sqrt((i+1)/count) inverts the cone's area CDF so ornaments are evenly
    spread over the surface instead of crowding the apex; capped at 0.9 so
    nothing hangs below the foliage.
    """
    if count <= 0:
        return np.zeros(0)
    i = np.arange(count, dtype=np.float64)
    return np.sqrt((i + 1.0) / count) * config.MAX_PROGRESS


def golden_angles(count: int, offset: float = 0.0) -> np.ndarray:
    return np.arange(count, dtype=np.float64) * config.GOLDEN_ANGLE + offset


def random_in_sphere(count: int, radius: float, rng: np.random.Generator) -> np.ndarray:
    """Uniform volumetric samples: cos(phi) uniform in [-1, 1], radius ~ cbrt(U)."""
    theta = rng.uniform(0.0, 2.0 * math.pi, count)
    cos_phi = rng.uniform(-1.0, 1.0, count)
    sin_phi = np.sqrt(1.0 - cos_phi * cos_phi)
    r = radius * np.cbrt(rng.uniform(0.0, 1.0, count))
    return np.stack([r * sin_phi * np.cos(theta), r * sin_phi * np.sin(theta), r * cos_phi], axis=1)


def _palette_colors(group: GroupConfig, count: int, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    palette = np.asarray(group.palette_rgb, dtype=np.float64)
    idx = rng.integers(0, len(palette), count)
    return idx, palette[idx]


def _blank(count: int) -> _Layout:
    z3 = np.zeros((count, 3))
    ones = np.ones((count, 3))
    return _Layout(
        formed=z3.copy(),
        chaos=z3.copy(),
        formed_scale=ones.copy(),
        chaos_scale=ones.copy(),
        rotation=z3.copy(),
        chaos_tilt=np.zeros(count),
        color_index=np.full(count, -1, dtype=np.int64),
        colors=ones.copy(),
        attribute=np.zeros(count),
        velocity=z3.copy(),
    )


def _place_ornaments(group: GroupConfig, rng: np.random.Generator) -> _Layout:
    n = group.count
    params = ORNAMENT_PARAMS[group.type]
    out = _blank(n)

    progress = conic_progress(n)
    r = progress * config.TREE_RADIUS
    y = config.APEX_Y - progress * config.TREE_HEIGHT
    theta = golden_angles(n, params.type_index * (2.0 * math.pi / 6.0))
    out.formed = np.stack([r * np.cos(theta), y, r * np.sin(theta)], axis=1) * params.push_out

    i = np.arange(n)
    if group.type is OrnamentType.PHOTO:
        # Wide spiral cloud so scattered photos stay legible.
        chaos_theta = golden_angles(n)
        chaos_y = (i / max(n, 1) - 0.5) * config.PHOTO_CHAOS_HEIGHT
        out.chaos = np.stack(
            [
                config.PHOTO_CHAOS_RADIUS * np.cos(chaos_theta),
                chaos_y,
                config.PHOTO_CHAOS_RADIUS * np.sin(chaos_theta),
            ],
            axis=1,
        )
        half = config.PHOTO_TILT_BUCKETS // 2
        out.chaos_tilt = ((i % config.PHOTO_TILT_BUCKETS) - half) * config.PHOTO_TILT_STEP
    else:
        out.chaos = random_in_sphere(n, config.CHAOS_RADIUS, rng)

    out.color_index, out.colors = _palette_colors(group, n, rng)

    if group.type is OrnamentType.BOX:
        base = np.stack(
            [1.0 + rng.uniform(0.0, 0.3, n), 0.7 + rng.uniform(0.0, 0.4, n), 1.0 + rng.uniform(0.0, 0.3, n)],
            axis=1,
        )
    else:
        base = np.full((n, 3), params.base_scale)
    jitter = rng.uniform(0.8, 1.2, n)
    out.formed_scale = base * (group.scale * jitter)[:, None]

    if group.type is OrnamentType.PHOTO:
        lo, hi = config.PHOTO_CHAOS_SCALE
        out.chaos_scale = out.formed_scale * rng.uniform(lo, hi, n)[:, None]
    else:
        out.chaos_scale = out.formed_scale.copy()

    out.rotation = np.stack([rng.uniform(0.0, math.pi, n), rng.uniform(0.0, math.pi, n), np.zeros(n)], axis=1)
    return out


def _place_foliage(group: GroupConfig, rng: np.random.Generator) -> _Layout:
    n = group.count
    out = _blank(n)
    height, radius = config.TREE_HEIGHT, config.TREE_RADIUS

    # 1 - sqrt(U) is bottom-heavy: progress 0 is the base.
    progress = 1.0 - np.sqrt(rng.uniform(0.0, 1.0, n))
    y = (progress - 0.5) * height
    r = (1.0 - progress) * radius
    angle = rng.uniform(0.0, 2.0 * math.pi, n)
    formed = np.stack([r * np.cos(angle), y, r * np.sin(angle)], axis=1)
    formed += (rng.uniform(0.0, 1.0, (n, 3)) - 0.5) * config.FOLIAGE_JITTER
    out.formed = formed
    out.chaos = random_in_sphere(n, height * 1.5, rng)

    u = rng.uniform(0.0, 1.0, n)
    out.attribute = u
    size = (0.6 + 0.8 * u) * group.scale
    out.formed_scale = np.repeat(size[:, None], 3, axis=1)
    out.chaos_scale = out.formed_scale.copy()

    palette = group.palette_rgb
    bottom = np.asarray(palette[0])
    top = np.asarray(palette[-1])
    h = np.clip((out.formed[:, 1] + height / 2.0) / height, 0.0, 1.0)[:, None]
    color = bottom * (1.0 - h) + top * h
    color *= (0.6 + 0.6 * u)[:, None]
    snow = (u >= config.FOLIAGE_SNOW_CUTOFF)[:, None] * config.FOLIAGE_SNOW_BLEND
    out.colors = np.clip(color * (1.0 - snow) + np.asarray(config.FOLIAGE_SNOW_COLOR) * snow, 0.0, 1.0)
    return out


def _place_spiral_lights(group: GroupConfig, rng: np.random.Generator) -> _Layout:
    n = group.count
    out = _blank(n)
    t = np.arange(n, dtype=np.float64) / max(n, 1)
    y = (t - 0.5) * config.SPIRAL_HEIGHT
    r = (1.0 - t) * config.SPIRAL_RADIUS + config.SPIRAL_OFFSET
    angle = t * 2.0 * math.pi * config.SPIRAL_TURNS
    out.formed = np.stack([r * np.cos(angle), y, r * np.sin(angle)], axis=1)
    out.chaos = random_in_sphere(n, config.SPIRAL_HEIGHT * config.SPIRAL_CHAOS_FACTOR, rng)
    out.formed_scale = np.full((n, 3), 0.15 * group.scale)
    out.chaos_scale = out.formed_scale.copy()
    out.color_index, out.colors = _palette_colors(group, n, rng)
    return out


def _place_snow(group: GroupConfig, rng: np.random.Generator) -> _Layout:
    n = group.count
    out = _blank(n)
    box = np.asarray(config.SNOW_BOX)
    base = (rng.uniform(0.0, 1.0, (n, 3)) - 0.5) * box
    # Snow has no tree shape; both arrangements share the base and the mix only widens the drift.
    out.formed = base
    out.chaos = base.copy()
    size = (rng.uniform(0.0, 1.0, n) * 2.0 + 1.0) * group.scale
    out.attribute = size
    out.formed_scale = np.repeat(size[:, None], 3, axis=1)
    out.chaos_scale = out.formed_scale.copy()
    out.velocity = np.stack(
        [
            rng.uniform(0.0, 0.5, n) + 0.2,
            rng.uniform(0.0, 2.0, n) + 1.0,
            rng.uniform(0.0, 0.5, n) + 0.2,
        ],
        axis=1,
    )
    out.color_index, out.colors = _palette_colors(group, n, rng)
    return out


def _place_top_star(group: GroupConfig, rng: np.random.Generator) -> _Layout:
    n = group.count
    out = _blank(n)
    out.formed[:, 1] = config.TOP_STAR_FORMED_Y
    out.chaos[:, 1] = config.TOP_STAR_CHAOS_Y
    out.formed_scale = np.full((n, 3), group.scale)
    out.chaos_scale = out.formed_scale.copy()
    out.color_index, out.colors = _palette_colors(group, n, rng)
    return out


PLACEMENT_STRATEGIES: Dict[OrnamentType, Callable[[GroupConfig, np.random.Generator], _Layout]] = {
    **{t: _place_ornaments for t in DECORATIVE_TYPES},
    OrnamentType.FOLIAGE: _place_foliage,
    OrnamentType.SPIRAL_LIGHT: _place_spiral_lights,
    OrnamentType.SNOW: _place_snow,
    OrnamentType.TOP_STAR: _place_top_star,
}


def _freeze(a: np.ndarray) -> np.ndarray:
    a = np.ascontiguousarray(a)
    a.flags.writeable = False
    return a


def generate(group: GroupConfig) -> ParticleSet:
    """
    Formed/chaos layout for one group, deterministic in (type, count, scale, seed).

    A count of zero or less gives an empty set.
    """
    strategy = PLACEMENT_STRATEGIES.get(group.type)
    if strategy is None:
        raise ConfigurationError(f"No placement strategy for group type '{group.type}'")

    rng = np.random.default_rng(group.seed)
    if group.count <= 0:
        layout = _blank(0)
    else:
        layout = strategy(group, rng)

    log.debug("generated %s: %d particles (seed %d)", group.group_id, group.count, group.seed)
    return ParticleSet(
        group_id=group.group_id,
        type=group.type,
        formed=_freeze(layout.formed),
        chaos=_freeze(layout.chaos),
        formed_scale=_freeze(layout.formed_scale),
        chaos_scale=_freeze(layout.chaos_scale),
        rotation=_freeze(layout.rotation),
        chaos_tilt=_freeze(layout.chaos_tilt),
        color_index=_freeze(layout.color_index),
        colors=_freeze(layout.colors),
        attribute=_freeze(layout.attribute),
        velocity=_freeze(layout.velocity),
    )
