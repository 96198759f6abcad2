from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np


Point2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
RGB = Tuple[float, float, float]


class OrnamentType(str, Enum):
    BALL = "BALL"
    BOX = "BOX"
    STAR = "STAR"
    CANDY = "CANDY"
    CRYSTAL = "CRYSTAL"
    PHOTO = "PHOTO"
    FOLIAGE = "FOLIAGE"
    SPIRAL_LIGHT = "SPIRAL_LIGHT"
    SNOW = "SNOW"
    TOP_STAR = "TOP_STAR"


# The six decorative groups that share the golden-angle cone and interleave by phase.
DECORATIVE_TYPES: Tuple[OrnamentType, ...] = (
    OrnamentType.BALL,
    OrnamentType.BOX,
    OrnamentType.STAR,
    OrnamentType.CANDY,
    OrnamentType.CRYSTAL,
    OrnamentType.PHOTO,
)


class GestureState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class OrientationMode(str, Enum):
    IDLE_SPIN = "IDLE_SPIN"
    DRAGGING = "DRAGGING"
    GRABBED = "GRABBED"


class UploadPhase(str, Enum):
    DISPERSE = "disperse"
    DATA_SWAP = "dataSwap"
    REFORM = "reform"


@dataclass(frozen=True)
class RawHandFrame:
    """
    One pose-estimation result.

    `landmarks` holds the 21 hand points in pixel coordinates of a frame of
    `width` x `height`, or is None when no hand was found.
    """

    landmarks: Optional[np.ndarray]  # shape (21, 2) or (21, 3)
    width: int
    height: int

    @classmethod
    def empty(cls, width: int = 1, height: int = 1) -> "RawHandFrame":
        return cls(landmarks=None, width=width, height=height)

    @property
    def has_hand(self) -> bool:
        return self.landmarks is not None


@dataclass(frozen=True)
class GestureSample:
    """Stabilised gesture for one detection cycle. Position is in [-1, 1]^2."""

    position: Point2
    openness_ratio: float
    detected: bool
    state: GestureState = GestureState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state is GestureState.OPEN


@dataclass(frozen=True)
class ParticleSet:
    """
    Generated layout of one particle group. Arrays are read-only.

    Per-particle rows: formed/chaos positions (N, 3), formed/chaos scales
    (N, 3), static rotation (N, 3), chaos tilt (N,), palette index (N,)
    (-1 where the colour is derived rather than sampled), colours (N, 3)
    and a free random attribute (N,) used by foliage, lights and snow.
    """

    group_id: str
    type: OrnamentType
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

    def __len__(self) -> int:
        return int(self.formed.shape[0])


@dataclass(frozen=True)
class ParticleTransform:
    group_id: str
    particle_index: int
    position: Vec3
    scale: Vec3
    rotation: Vec3
    color: RGB


@dataclass(frozen=True)
class CameraPose:
    position: Vec3
    target: Vec3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class GroupFrame:
    """Transforms of one group for one tick, as read-only (N, 3) arrays."""

    group_id: str
    type: OrnamentType
    positions: np.ndarray
    scales: np.ndarray
    rotations: np.ndarray
    colors: np.ndarray
    images: Tuple[Optional[str], ...] = ()

    def __len__(self) -> int:
        return int(self.positions.shape[0])


@dataclass(frozen=True)
class OrientationState:
    """Read-only copy of the orientation controller for one tick."""

    rotation_y: float
    rotation_velocity: float
    zoom_target: float
    is_dragging: bool
    is_grabbed: bool
    grab_offset: float
    mode: OrientationMode


@dataclass(frozen=True)
class FrameOutput:
    """Everything the renderer needs for one tick."""

    groups: Tuple[GroupFrame, ...]
    camera: CameraPose
    rotation_y: float
    mix: float
    target_mix: int
    mode: OrientationMode
    overlay_visible: bool
    gesture_available: bool
    orientation: Optional[OrientationState] = None

    def transforms(self) -> List[ParticleTransform]:
        """Flatten every group into ordered per-particle records."""
        out: List[ParticleTransform] = []
        for g in self.groups:
            for i in range(len(g)):
                out.append(
                    ParticleTransform(
                        group_id=g.group_id,
                        particle_index=i,
                        position=tuple(float(v) for v in g.positions[i]),
                        scale=tuple(float(v) for v in g.scales[i]),
                        rotation=tuple(float(v) for v in g.rotations[i]),
                        color=tuple(float(v) for v in g.colors[i]),
                    )
                )
        return out

    @property
    def particle_count(self) -> int:
        return sum(len(g) for g in self.groups)
