"""Detector configuration: sensitivity presets and JSON-backed settings."""

import json
import logging
import math
import os
import time
from dataclasses import dataclass, asdict, replace
from typing import Dict, Optional

from assessment.constants import (
    CANVAS_HEIGHT, CANVAS_WIDTH, DEFAULT_FINGER, DEFAULT_SENSITIVITY,
    EAR_BLINK_THRESHOLD, FINGER_LANDMARKS, MAX_CURVATURE, MIN_BLINK_INTERVAL_MS,
    MIN_GAZE_SHIFT_INTERVAL_MS, SENSITIVITY_PRESETS
)

logger = logging.getLogger(__name__)


def _check_sensitivity(sensitivity):
    if not isinstance(sensitivity, str) or sensitivity not in SENSITIVITY_PRESETS:
        raise ValueError(
            f"Unknown sensitivity {sensitivity!r}; "
            f"expected one of {sorted(SENSITIVITY_PRESETS)}"
        )


def _number(value, name: str, cast=float):
    try:
        number = cast(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


@dataclass(frozen=True)
class DetectorConfig:
    """
    Settings consumed by a TapDetector.

    ``tap_threshold`` and ``min_tap_interval_ms`` default to the values of the
    ``sensitivity`` preset; explicit values win over the preset.
    """

    sensitivity: str = DEFAULT_SENSITIVITY
    tap_threshold: Optional[float] = None
    min_tap_interval_ms: Optional[float] = None
    max_curvature: float = MAX_CURVATURE
    finger: str = DEFAULT_FINGER
    canvas_width: int = CANVAS_WIDTH
    canvas_height: int = CANVAS_HEIGHT
    occlusion_reset_ms: Optional[float] = None  # None keeps memory across occlusions

    def __post_init__(self):
        _check_sensitivity(self.sensitivity)
        if not isinstance(self.finger, str) or self.finger not in FINGER_LANDMARKS:
            raise ValueError(f"Unknown finger {self.finger!r}")

        preset = SENSITIVITY_PRESETS[self.sensitivity]
        for name in ('tap_threshold', 'min_tap_interval_ms'):
            if getattr(self, name) is None:
                object.__setattr__(self, name, preset[name])
        # Settings may come from JSON: normalize the numeric fields
        for name in ('tap_threshold', 'min_tap_interval_ms', 'max_curvature'):
            object.__setattr__(self, name, _number(getattr(self, name), name))
        for name in ('canvas_width', 'canvas_height'):
            object.__setattr__(self, name, _number(getattr(self, name), name, int))
        if self.occlusion_reset_ms is not None:
            object.__setattr__(self, 'occlusion_reset_ms',
                               _number(self.occlusion_reset_ms, 'occlusion_reset_ms'))

        if self.tap_threshold <= 0:
            raise ValueError("tap_threshold must be positive")
        if self.min_tap_interval_ms < 0:
            raise ValueError("min_tap_interval_ms must not be negative")
        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError("canvas dimensions must be positive")
        if self.occlusion_reset_ms is not None and self.occlusion_reset_ms <= 0:
            raise ValueError("occlusion_reset_ms must be positive when set")

    @classmethod
    def from_sensitivity(cls, sensitivity: str = DEFAULT_SENSITIVITY, **overrides) -> 'DetectorConfig':
        """
        Build a config from one of the "low" / "normal" / "high" presets.

        Args:
            sensitivity: Preset name
            **overrides: Explicit values that win over the preset

        Returns:
            DetectorConfig
        """
        _check_sensitivity(sensitivity)
        values = dict(SENSITIVITY_PRESETS[sensitivity])
        values.update(overrides)
        return cls(sensitivity=sensitivity, **values)

    def with_sensitivity(self, sensitivity: str) -> 'DetectorConfig':
        """Return a copy with the preset's threshold and interval applied."""
        _check_sensitivity(sensitivity)
        return replace(self, sensitivity=sensitivity, **SENSITIVITY_PRESETS[sensitivity])

    @property
    def landmark_indices(self):
        """(tip, dip, pip) indices of the tracked finger."""
        return FINGER_LANDMARKS[self.finger]

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class EyeDetectorConfig:
    """Settings consumed by the blink and gaze-shift detectors."""

    ear_threshold: float = EAR_BLINK_THRESHOLD
    min_blink_interval_ms: float = MIN_BLINK_INTERVAL_MS
    min_shift_interval_ms: float = MIN_GAZE_SHIFT_INTERVAL_MS

    def __post_init__(self):
        if self.ear_threshold <= 0:
            raise ValueError("ear_threshold must be positive")
        if self.min_blink_interval_ms < 0 or self.min_shift_interval_ms < 0:
            raise ValueError("refractory intervals must not be negative")

    def to_dict(self) -> Dict:
        return asdict(self)


def load_detector_config(filepath: str) -> DetectorConfig:
    """
    Load detector settings from a JSON file.

    The file may name a ``sensitivity`` preset; any other keys override the
    preset values.

    Args:
        filepath: Path to the JSON settings file

    Returns:
        DetectorConfig

    Raises:
        ValueError: If the file cannot be read or holds invalid settings
    """
    try:
        with open(filepath, 'r') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise ValueError(f"Failed to load detector config {filepath}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Detector config {filepath} must hold a JSON object")

    settings = data.get('detector', data)
    if not isinstance(settings, dict):
        raise ValueError(f"Detector settings in {filepath} must be a JSON object")
    sensitivity = settings.get('sensitivity', DEFAULT_SENSITIVITY)
    known = set(DetectorConfig.__dataclass_fields__) - {'sensitivity'}
    overrides = {k: v for k, v in settings.items() if k in known}
    unknown = set(settings) - known - {'sensitivity', 'timestamp'}
    if unknown:
        logger.warning("Ignoring unknown detector settings: %s", ", ".join(sorted(unknown)))

    config = DetectorConfig.from_sensitivity(sensitivity, **overrides)
    logger.info("Loaded detector config from %s (sensitivity=%s)", filepath, config.sensitivity)
    return config


def save_detector_config(config: DetectorConfig, filepath: str):
    """Save detector settings to a JSON file."""
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    data = {
        'detector': config.to_dict(),
        'timestamp': time.time(),
    }
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("Detector config saved to %s", filepath)
