from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from . import config
from .config import GroupConfig, SceneConfig
from .morph import MorphController, Timeline
from .orientation import OrientationController
from .placement import generate
from .types import (
    CameraPose,
    FrameOutput,
    GestureSample,
    GroupFrame,
    OrnamentType,
    ParticleSet,
    Point2,
    UploadPhase,
)
from .utils import clamp


log = logging.getLogger(__name__)


def _frozen(a: np.ndarray) -> np.ndarray:
    a.flags.writeable = False
    return a


def rotate_y(points: np.ndarray, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    out = points.copy()
    out[:, 0] = points[:, 0] * c + points[:, 2] * s
    out[:, 2] = -points[:, 0] * s + points[:, 2] * c
    return out


class Choreographer:
    """
    Owns the scene's particle groups and turns input events into per-tick
    particle transforms.

    All groups move in lockstep on one `MorphController`. Photo uploads and
    clears run a disperse -> data swap -> reform sequence on an internal
    `Timeline`; only the PHOTO group is regenerated by the swap.
    """

    def __init__(
        self,
        scene: Optional[SceneConfig] = None,
        morph: Optional[MorphController] = None,
        orientation: Optional[OrientationController] = None,
        images: Sequence[str] = (),
    ) -> None:
        self.morph = morph or MorphController()
        self.orientation = orientation or OrientationController()
        self.timeline = Timeline()
        self.overlay_visible = False
        self.gesture_available = True
        self.elapsed = 0.0

        self._images: List[str] = list(images)[-config.MAX_TOTAL_IMAGES :]
        self._pending_images: Optional[List[str]] = None
        self._scene = SceneConfig()
        self._sets: Dict[str, ParticleSet] = {}
        self.reconfigure(scene or config.default_scene(photo_count=self._photo_count()))
        self._sync_photo_group()

    # -- configuration ---------------------------------------------------------

    @property
    def scene(self) -> SceneConfig:
        return self._scene

    @property
    def particle_sets(self) -> Dict[str, ParticleSet]:
        return dict(self._sets)

    @property
    def images(self) -> Tuple[str, ...]:
        return tuple(self._images)

    def reconfigure(self, scene: SceneConfig) -> None:
        """Adopt a new scene, regenerating only groups whose configuration changed."""
        old = {g.group_id: g for g in self._scene.groups}
        sets: Dict[str, ParticleSet] = {}
        for group in scene.groups:
            cached = self._sets.get(group.group_id)
            if cached is not None and old.get(group.group_id) == group:
                sets[group.group_id] = cached
            else:
                sets[group.group_id] = generate(group)
                log.debug("group %s regenerated (%d particles)", group.group_id, group.count)
        self._scene = scene
        self._sets = sets

    def _photo_count(self) -> int:
        return len(self._images) if self._images else config.DEFAULT_PHOTO_COUNT

    def _sync_photo_group(self) -> None:
        photo = self._scene.find(OrnamentType.PHOTO)
        if photo is None:
            return
        count = self._photo_count()
        if photo.count != count:
            self.reconfigure(self._scene.replace_group(photo.with_count(count)))

    # -- input events ----------------------------------------------------------

    @property
    def mix(self) -> float:
        return self.morph.mix

    @property
    def target_mix(self) -> int:
        return self.morph.target

    def set_target_mix(self, target: int) -> None:
        self.morph.set_target(target)

    def toggle(self) -> int:
        self.morph.set_target(0 if self.morph.target == 1 else 1)
        return self.morph.target

    def set_gesture_available(self, available: bool) -> None:
        if available != self.gesture_available:
            if available:
                log.info("gesture control available")
            else:
                log.warning("gesture control unavailable, pointer input only")
        self.gesture_available = available
        if not available:
            self.orientation.set_gesture((0.0, 0.0), False)

    def on_gesture_sample(self, sample: Optional[GestureSample]) -> None:
        if sample is None:
            return
        if sample.detected and self.gesture_available:
            self.morph.set_target(0 if sample.is_open else 1)
            x, y = sample.position
            self.orientation.set_gesture((x * config.GESTURE_X_GAIN, y), True)
        else:
            # Keep the last position so the camera does not jump on loss.
            self.orientation.set_gesture((0.0, 0.0), False)

    def on_pointer_down(self, x: float, y: float = 0.0, primary: bool = True) -> None:
        self.orientation.pointer_down(x, y, primary)

    def on_pointer_move(self, x: float, y: float = 0.0, primary: bool = True) -> None:
        self.orientation.pointer_move(x, y, primary)

    def on_pointer_up(self, x: float = 0.0, y: float = 0.0, primary: bool = True) -> None:
        self.orientation.pointer_up(primary)

    def on_wheel(self, delta_y: float) -> None:
        self.orientation.wheel(delta_y)

    def on_pinch(self, delta_distance: float) -> None:
        self.orientation.pinch(delta_distance)

    def on_touch_start(self, points: Sequence[Point2]) -> None:
        self.orientation.touch_start(points)

    def on_touch_move(self, points: Sequence[Point2]) -> None:
        self.orientation.touch_move(points)

    def on_touch_end(self) -> None:
        self.orientation.touch_end()

    # -- upload lifecycle --------------------------------------------------------

    def on_upload_lifecycle(self, phase: UploadPhase) -> None:
        phase = UploadPhase(phase)
        if phase is UploadPhase.DISPERSE:
            self.overlay_visible = True
            self.morph.set_target(0)
        elif phase is UploadPhase.DATA_SWAP:
            if self._pending_images is not None:
                self._images = self._pending_images
                self._pending_images = None
            self._sync_photo_group()
        else:
            self.overlay_visible = False
            self.morph.set_target(1)
        log.debug("upload lifecycle: %s", phase.value)

    def add_images(self, images: Iterable[str]) -> bool:
        batch = list(images)[: config.MAX_BATCH_IMAGES]
        if not batch:
            return False
        base = self._pending_images if self._pending_images is not None else self._images
        combined = (list(base) + batch)[-config.MAX_TOTAL_IMAGES :]
        self._start_swap(combined)
        return True

    def clear_images(self) -> bool:
        if not self._images and not self._pending_images:
            return False
        self._start_swap([])
        return True

    def _start_swap(self, images: List[str]) -> None:
        if self.timeline.cancel():
            log.info("pending photo swap replaced")
        self._pending_images = images
        self.on_upload_lifecycle(UploadPhase.DISPERSE)
        swap_at = config.SWAP_DELAY_S
        reform_at = max(swap_at + config.REFORM_DELAY_S, config.MIN_OVERLAY_S)
        self.timeline.schedule(swap_at, UploadPhase.DATA_SWAP.value, lambda: self.on_upload_lifecycle(UploadPhase.DATA_SWAP))
        self.timeline.schedule(reform_at, UploadPhase.REFORM.value, lambda: self.on_upload_lifecycle(UploadPhase.REFORM))

    # -- tick --------------------------------------------------------------------

    def tick(self, dt: float) -> FrameOutput:
        dt = clamp(dt, 0.0, config.MAX_DT)
        self.timeline.advance(dt)
        self.elapsed += dt
        mix = self.morph.update(dt)
        rotation_y = self.orientation.update(dt)
        camera = self.orientation.camera

        frames = tuple(self._group_frame(self._sets[g.group_id], g, mix, rotation_y, camera) for g in self._scene.groups)
        return FrameOutput(
            groups=frames,
            camera=camera,
            rotation_y=rotation_y,
            mix=mix,
            target_mix=self.morph.target,
            mode=self.orientation.mode,
            overlay_visible=self.overlay_visible,
            gesture_available=self.gesture_available,
            orientation=self.orientation.snapshot(),
        )

    def _group_frame(
        self,
        ps: ParticleSet,
        group: GroupConfig,
        mix: float,
        rotation_y: float,
        camera: CameraPose,
    ) -> GroupFrame:
        t = self.elapsed
        pos = ps.chaos + (ps.formed - ps.chaos) * mix
        scale = ps.chaos_scale + (ps.formed_scale - ps.chaos_scale) * mix
        rot = np.array(ps.rotation, dtype=np.float64)
        kind = ps.type

        if kind is OrnamentType.SNOW:
            pos = self._snow(ps, mix, camera)
            return GroupFrame(
                group_id=ps.group_id,
                type=kind,
                positions=_frozen(pos),
                scales=_frozen(scale),
                rotations=_frozen(rot),
                colors=ps.colors,
            )

        if kind is OrnamentType.FOLIAGE:
            breath = np.sin(t + pos[:, 1] * 0.5) * 0.05 * mix
            pos[:, 0] += pos[:, 0] * breath
            pos[:, 2] += pos[:, 2] * breath
        elif kind is OrnamentType.SPIRAL_LIGHT:
            i = np.arange(len(ps))
            pulse = np.sin(t * 3.0 + i * 0.1) * 0.05 + 0.15
            scale = np.repeat((pulse * group.scale)[:, None], 3, axis=1)
        elif kind is OrnamentType.TOP_STAR:
            rot = self._top_star_rotation(len(ps), mix)
        else:
            rot = self._ornament_rotation(ps, pos, rot, mix, rotation_y, camera)

        world = rotate_y(pos, rotation_y)
        rot[:, 1] += rotation_y
        images: Tuple[Optional[str], ...] = ()
        if kind is OrnamentType.PHOTO:
            images = tuple(self._images[i] if i < len(self._images) else None for i in range(len(ps)))
        return GroupFrame(
            group_id=ps.group_id,
            type=kind,
            positions=_frozen(world),
            scales=_frozen(scale),
            rotations=_frozen(rot),
            colors=ps.colors,
            images=images,
        )

    def _ornament_rotation(
        self,
        ps: ParticleSet,
        pos: np.ndarray,
        rot: np.ndarray,
        mix: float,
        rotation_y: float,
        camera: CameraPose,
    ) -> np.ndarray:
        kind = ps.type
        if kind is OrnamentType.PHOTO:
            if mix > config.FACE_OUT_MIX:
                yaw = np.arctan2(pos[:, 0], pos[:, 2])
                roll = ps.chaos_tilt * (1.0 - mix) / (1.0 - config.FACE_OUT_MIX)
                return np.stack([np.zeros(len(ps)), yaw, roll], axis=1)
            # Face the camera, expressed in the tree's rotated frame.
            cam = rotate_y(np.asarray([camera.position], dtype=np.float64), -rotation_y)[0]
            d = cam - pos
            yaw = np.arctan2(d[:, 0], d[:, 2])
            pitch = -np.arctan2(d[:, 1], np.hypot(d[:, 0], d[:, 2]))
            return np.stack([pitch, yaw, np.array(ps.chaos_tilt)], axis=1)

        if kind in (OrnamentType.STAR, OrnamentType.CRYSTAL) and mix > config.FACE_OUT_MIX:
            yaw = np.arctan2(-pos[:, 0], -pos[:, 2])
            roll = np.full(len(ps), math.pi / 2.0 if kind is OrnamentType.STAR else 0.0)
            return np.stack([np.zeros(len(ps)), yaw, roll], axis=1)

        if mix < config.TUMBLE_MIX:
            rot[:, 0] += self.elapsed * config.TUMBLE_SPEED
            rot[:, 1] += self.elapsed * config.TUMBLE_SPEED
        return rot

    def _top_star_rotation(self, n: int, mix: float) -> np.ndarray:
        t = self.elapsed
        amp = (1.0 - mix) * 0.5
        if mix >= config.TOP_STAR_WOBBLE_MIX:
            # Fade the wobble out over the last stretch of the morph.
            amp *= (1.0 - mix) / (1.0 - config.TOP_STAR_WOBBLE_MIX)
        rot = np.zeros((n, 3))
        rot[:, 0] = math.cos(t * 0.8) * amp
        rot[:, 1] = t * 0.5
        rot[:, 2] = math.sin(t) * amp
        return rot

    def _snow(self, ps: ParticleSet, mix: float, camera: CameraPose) -> np.ndarray:
        t = self.elapsed
        base = ps.formed
        vel = ps.velocity
        wrap = config.SNOW_WRAP
        pos = np.array(base, dtype=np.float64)
        pos[:, 1] = np.mod(base[:, 1] - t * vel[:, 1] + wrap, 2.0 * wrap) - wrap
        pos[:, 0] += np.sin(t * vel[:, 0] + pos[:, 1]) * (0.5 + (1.0 - mix) * 2.0)
        pos[:, 2] += np.cos(t * vel[:, 2] + pos[:, 0]) * 0.5
        cx, cy, _ = camera.position
        pos[:, 0] += cx
        pos[:, 1] += cy
        return pos
