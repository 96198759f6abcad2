from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid scene or group configuration, raised before any placement work."""


class PoseEstimationError(RuntimeError):
    """The hand landmark model could not be loaded or failed on a frame."""
