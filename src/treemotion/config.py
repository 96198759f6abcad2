# config.py - treemotion
# Tunable constants grouped by concern, plus the scene/group configuration types.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError
from .types import OrnamentType
from .utils import hex_to_rgb


# ---------------------------------------------------------------------------
# Camera / pose estimation
# ---------------------------------------------------------------------------
CAMERA_INDEX = 0
CAMERA_WIDTH = 1280
CAMERA_HEIGHT = 720
MP_MIN_DETECTION_CONF = 0.5
MP_MIN_TRACKING_CONF = 0.5
TASKS_MODEL_PATH = "models/hand_landmarker.task"

# ---------------------------------------------------------------------------
# Gesture signal processing
# ---------------------------------------------------------------------------
POLL_INTERVAL_S = 0.1        # detection throttled to <= 10 Hz
POSITION_WINDOW = 8          # wrist position moving average
RATIO_WINDOW = 5             # openness ratio moving average
OPEN_THRESHOLD = 1.6         # CLOSED -> OPEN when smoothed ratio rises above
CLOSE_THRESHOLD = 1.2        # OPEN -> CLOSED when smoothed ratio falls below
MISSED_FRAMES_TO_RESET = 5
RATIO_EPSILON = 1e-6

WRIST = 0
FINGER_BASES = (5, 9, 13, 17)    # index/middle/ring/pinky MCP
FINGER_TIPS = (8, 12, 16, 20)

# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))
TREE_HEIGHT = 18.0
TREE_RADIUS = 7.5
APEX_Y = 9.0
MAX_PROGRESS = 0.9
CHAOS_RADIUS = 25.0

PHOTO_CHAOS_RADIUS = 18.0
PHOTO_CHAOS_HEIGHT = 12.0
PHOTO_CHAOS_SCALE = (3.5, 5.0)
PHOTO_TILT_STEP = 0.15
PHOTO_TILT_BUCKETS = 5

FOLIAGE_JITTER = 1.0
FOLIAGE_SNOW_CUTOFF = 0.85
FOLIAGE_SNOW_COLOR = (0.95, 0.98, 1.0)
FOLIAGE_SNOW_BLEND = 0.9

SPIRAL_HEIGHT = 19.0
SPIRAL_RADIUS = 7.5
SPIRAL_TURNS = 9.0
SPIRAL_OFFSET = 0.5
SPIRAL_CHAOS_FACTOR = 1.2

SNOW_BOX = (50.0, 30.0, 40.0)
SNOW_WRAP = 15.0

TOP_STAR_FORMED_Y = 9.2
TOP_STAR_CHAOS_Y = 13.0

# ---------------------------------------------------------------------------
# Morph
# ---------------------------------------------------------------------------
MORPH_RATE = 5.0             # 1/s
MAX_DT = 0.1
FACE_OUT_MIX = 0.8           # ornaments orient to the trunk above this mix
TUMBLE_MIX = 0.5             # ornaments tumble below this mix
TUMBLE_SPEED = 0.5           # rad/s
TOP_STAR_WOBBLE_MIX = 0.9

# ---------------------------------------------------------------------------
# Orientation / camera
# ---------------------------------------------------------------------------
BASE_SPIN = 0.002            # rad per tick
SPIN_RELAX_RATE = 0.5
GRAB_RELEASE_EPSILON = 1e-4
HAND_ROTATION_FACTOR = math.pi * 1.2
GRAB_SMOOTHING_RATE = 6.0
DRAG_RADIANS_PER_PX = 0.005
INPUT_SMOOTHING_RATE = 4.0
CAMERA_SMOOTHING_RATE = 4.0
PARALLAX_SCALE = (4.0, 2.0)
PARALLAX_ZOOM = 2.0
ZOOM_DEFAULT = 32.0
ZOOM_RANGE = (12.0, 55.0)
WHEEL_ZOOM_SPEED = 0.02
PINCH_ZOOM_SPEED = 0.15
GESTURE_X_GAIN = 1.2

# ---------------------------------------------------------------------------
# Upload sequence
# ---------------------------------------------------------------------------
SWAP_DELAY_S = 0.6           # disperse -> data swap
REFORM_DELAY_S = 0.8         # data swap -> reform
MIN_OVERLAY_S = 1.2
MAX_BATCH_IMAGES = 30
MAX_TOTAL_IMAGES = 50
DEFAULT_PHOTO_COUNT = 10

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = LOG_LEVEL) -> None:
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ConfigurationError(f"Unknown log level '{name}'")
    root = logging.getLogger("treemotion")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


# ---------------------------------------------------------------------------
# Palettes
# ---------------------------------------------------------------------------
BALL_COLORS = ["#8B0000", "#D32F2F", "#1B5E20", "#D4AF37", "#C0C0C0", "#191970"]
BOX_COLORS = [
    "#800000",
    "#1B5E20",
    "#D4AF37",
    "#FFFFFF",
    "#4B0082",
    "#2F4F4F",
    "#008080",
    "#8B4513",
    "#DC143C",
]
STAR_COLORS = ["#FFD700", "#FDB931"]
CRYSTAL_COLORS = ["#F0F8FF", "#E0FFFF", "#B0E0E6"]
CANDY_COLORS = ["#FFFFFF"]
PHOTO_COLORS = ["#FFFFFF"]
FOLIAGE_COLORS = ["#022b1c", "#217a46"]  # bottom, top
SPIRAL_LIGHT_COLORS = ["#fffae0"]
SNOW_COLORS = ["#FFFFFF"]
TOP_STAR_COLORS = ["#FFD700"]


@dataclass(frozen=True)
class GroupConfig:
    """
    One particle group. `type` may be given as a tag string; unknown tags
    are rejected here, before any placement work.
    """

    type: OrnamentType
    count: int
    scale: float = 1.0
    palette: Tuple[str, ...] = ("#FFFFFF",)
    seed: int = 0
    group_id: str = ""

    def __post_init__(self) -> None:
        try:
            t = OrnamentType(self.type)
        except ValueError as e:
            raise ConfigurationError(f"Unknown group type '{self.type}'. Available: {[m.value for m in OrnamentType]}") from e
        object.__setattr__(self, "type", t)
        object.__setattr__(self, "count", int(self.count))
        palette = tuple(self.palette)
        if not palette:
            raise ConfigurationError(f"Group {t.value} needs at least one colour")
        for c in palette:
            hex_to_rgb(c)
        object.__setattr__(self, "palette", palette)
        if not self.group_id:
            object.__setattr__(self, "group_id", t.value.lower())

    @property
    def palette_rgb(self) -> List[Tuple[float, float, float]]:
        return [hex_to_rgb(c) for c in self.palette]

    def with_count(self, count: int) -> "GroupConfig":
        return replace(self, count=count)


@dataclass(frozen=True)
class SceneConfig:
    groups: Tuple[GroupConfig, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ids = [g.group_id for g in self.groups]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ConfigurationError(f"Duplicate group ids: {dupes}")
        object.__setattr__(self, "groups", tuple(self.groups))

    def find(self, type_: OrnamentType) -> Optional[GroupConfig]:
        for g in self.groups:
            if g.type is type_:
                return g
        return None

    def replace_group(self, group: GroupConfig) -> "SceneConfig":
        return SceneConfig(tuple(group if g.group_id == group.group_id else g for g in self.groups))


def default_scene(
    photo_count: int = DEFAULT_PHOTO_COUNT,
    foliage_count: int = 75000,
    seed: int = 0,
) -> SceneConfig:
    specs: Sequence[Tuple[OrnamentType, int, float, Sequence[str]]] = (
        (OrnamentType.SNOW, 3000, 1.0, SNOW_COLORS),
        (OrnamentType.TOP_STAR, 1, 1.0, TOP_STAR_COLORS),
        (OrnamentType.FOLIAGE, foliage_count, 1.0, FOLIAGE_COLORS),
        (OrnamentType.SPIRAL_LIGHT, 300, 1.0, SPIRAL_LIGHT_COLORS),
        (OrnamentType.BALL, 60, 0.5, BALL_COLORS),
        (OrnamentType.BOX, 30, 0.6, BOX_COLORS),
        (OrnamentType.STAR, 25, 0.5, STAR_COLORS),
        (OrnamentType.CRYSTAL, 40, 0.4, CRYSTAL_COLORS),
        (OrnamentType.CANDY, 40, 0.8, CANDY_COLORS),
        (OrnamentType.PHOTO, photo_count, 1.0, PHOTO_COLORS),
    )
    groups: Dict[str, GroupConfig] = {}
    for i, (t, count, scale, palette) in enumerate(specs):
        g = GroupConfig(type=t, count=count, scale=scale, palette=tuple(palette), seed=seed + i)
        groups[g.group_id] = g
    return SceneConfig(tuple(groups.values()))
