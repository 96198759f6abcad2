from .choreographer import Choreographer
from .config import GroupConfig, SceneConfig, default_scene
from .gesture import GesturePoller, HysteresisClassifier, SignalProcessor
from .morph import MorphController, Timeline
from .orientation import OrientationController
from .placement import generate
from .types import FrameOutput, GestureSample, GestureState, OrnamentType, ParticleSet, RawHandFrame

__all__ = [
    "Choreographer",
    "GroupConfig",
    "SceneConfig",
    "default_scene",
    "GesturePoller",
    "HysteresisClassifier",
    "SignalProcessor",
    "MorphController",
    "Timeline",
    "OrientationController",
    "generate",
    "FrameOutput",
    "GestureSample",
    "GestureState",
    "OrnamentType",
    "ParticleSet",
    "RawHandFrame",
]
