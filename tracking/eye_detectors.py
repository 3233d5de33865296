"""Blink and gaze fixation-shift detection from face mesh frames."""

import logging
from dataclasses import dataclass
from typing import Optional

from assessment.constants import (
    CONJUGATE_TOLERANCE, FACE_LANDMARK_COUNT, GAZE_HIGH_BAND, GAZE_LOW_BAND,
    LEFT_EYE_BOTTOM, LEFT_EYE_INNER, LEFT_EYE_OUTER, LEFT_EYE_TOP,
    LEFT_IRIS_CENTER, MAX_TAP_MAGNITUDE, RIGHT_EYE_BOTTOM, RIGHT_EYE_INNER,
    RIGHT_EYE_OUTER, RIGHT_EYE_TOP, RIGHT_IRIS_CENTER
)
from .calibration import EyeDetectorConfig
from .types import LandmarkFrame, TapEvent

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


@dataclass(frozen=True)
class EyeMetrics:
    """Per-frame eye geometry derived from a face mesh."""
    left_ear: float
    right_ear: float
    left_iris_relative: float
    right_iris_relative: float
    left_iris_vertical: float
    gaze_direction: str
    iris_midpoint: tuple

    @property
    def average_ear(self) -> float:
        return (self.left_ear + self.right_ear) / 2

    @property
    def average_iris_position(self) -> float:
        return (self.left_iris_relative + self.right_iris_relative) / 2

    @property
    def conjugate_movement(self) -> bool:
        """Both eyes moving together."""
        return abs(self.left_iris_relative - self.right_iris_relative) < CONJUGATE_TOLERANCE


def _ratio(numerator: float, denominator: float) -> Optional[float]:
    if abs(denominator) < _EPSILON:
        return None
    return numerator / denominator


def classify_gaze(horizontal: float, vertical: float) -> str:
    """Map relative iris positions to a coarse gaze direction."""
    direction = 'center'
    if horizontal < GAZE_LOW_BAND:
        direction = 'right'
    elif horizontal > GAZE_HIGH_BAND:
        direction = 'left'

    # Vertical deviation wins over horizontal
    if vertical < GAZE_LOW_BAND:
        direction = 'up'
    elif vertical > GAZE_HIGH_BAND:
        direction = 'down'
    return direction


def compute_eye_metrics(frame: LandmarkFrame) -> Optional[EyeMetrics]:
    """
    Calculate eye aspect ratios and iris positions for a face frame.

    Returns None when the face is not visible, the mesh lacks the iris
    landmarks, or the eye geometry is degenerate.
    """
    if not frame.is_visible or len(frame.keypoints) < FACE_LANDMARK_COUNT:
        return None

    lm = frame.keypoints
    left_center, right_center = lm[LEFT_IRIS_CENTER], lm[RIGHT_IRIS_CENTER]

    left_ear = _ratio(abs(lm[LEFT_EYE_TOP].y - lm[LEFT_EYE_BOTTOM].y),
                      abs(lm[LEFT_EYE_INNER].x - lm[LEFT_EYE_OUTER].x))
    right_ear = _ratio(abs(lm[RIGHT_EYE_TOP].y - lm[RIGHT_EYE_BOTTOM].y),
                       abs(lm[RIGHT_EYE_INNER].x - lm[RIGHT_EYE_OUTER].x))
    left_rel = _ratio(left_center.x - lm[LEFT_EYE_INNER].x,
                      lm[LEFT_EYE_OUTER].x - lm[LEFT_EYE_INNER].x)
    right_rel = _ratio(right_center.x - lm[RIGHT_EYE_INNER].x,
                       lm[RIGHT_EYE_OUTER].x - lm[RIGHT_EYE_INNER].x)
    left_vertical = _ratio(left_center.y - lm[LEFT_EYE_TOP].y,
                           lm[LEFT_EYE_BOTTOM].y - lm[LEFT_EYE_TOP].y)

    if None in (left_ear, right_ear, left_rel, right_rel, left_vertical):
        return None

    return EyeMetrics(
        left_ear=left_ear,
        right_ear=right_ear,
        left_iris_relative=left_rel,
        right_iris_relative=right_rel,
        left_iris_vertical=left_vertical,
        gaze_direction=classify_gaze((left_rel + right_rel) / 2, left_vertical),
        iris_midpoint=((left_center.x + right_center.x) / 2,
                       (left_center.y + right_center.y) / 2),
    )


class BlinkDetector:
    """Emits one event per eye closure (open -> closed transition)."""

    def __init__(self, config: Optional[EyeDetectorConfig] = None, label: Optional[str] = 'eyes'):
        self.config = config or EyeDetectorConfig()
        self.label = label
        self.was_closed: Optional[bool] = None
        self.last_event_time: Optional[float] = None
        self.last_frame_time: Optional[float] = None

    def process_frame(self, frame: LandmarkFrame) -> Optional[TapEvent]:
        now = frame.timestamp_ms
        if self.last_frame_time is not None and now <= self.last_frame_time:
            return None
        self.last_frame_time = now

        metrics = compute_eye_metrics(frame)
        if metrics is None:
            return None

        ear = metrics.average_ear
        closed = ear < self.config.ear_threshold
        event = None

        if closed and self.was_closed is False and self._refractory_elapsed(now):
            magnitude = (MAX_TAP_MAGNITUDE if ear <= _EPSILON
                         else min(self.config.ear_threshold / ear, MAX_TAP_MAGNITUDE))
            event = TapEvent(
                timestamp=now,
                position=metrics.iris_midpoint,
                magnitude=magnitude,
                shape_metric=ear,
                kind='blink',
                limb_label=self.label,
            )
            self.last_event_time = now
            logger.debug("Blink at %.1f ms (EAR=%.3f)", now, ear)

        self.was_closed = closed
        return event

    def _refractory_elapsed(self, now: float) -> bool:
        if self.last_event_time is None:
            return True
        return now - self.last_event_time > self.config.min_blink_interval_ms

    def reset(self):
        self.was_closed = None
        self.last_event_time = None
        self.last_frame_time = None


class GazeShiftDetector:
    """Emits an event whenever the coarse gaze direction changes."""

    def __init__(self, config: Optional[EyeDetectorConfig] = None, label: Optional[str] = 'eyes'):
        self.config = config or EyeDetectorConfig()
        self.label = label
        self.direction: Optional[str] = None
        self.previous_position: Optional[float] = None
        self.last_event_time: Optional[float] = None
        self.last_frame_time: Optional[float] = None

    def process_frame(self, frame: LandmarkFrame) -> Optional[TapEvent]:
        now = frame.timestamp_ms
        if self.last_frame_time is not None and now <= self.last_frame_time:
            return None
        self.last_frame_time = now

        metrics = compute_eye_metrics(frame)
        if metrics is None:
            return None

        position = metrics.average_iris_position
        event = None

        if (self.direction is not None
                and metrics.gaze_direction != self.direction
                and self._refractory_elapsed(now)):
            event = TapEvent(
                timestamp=now,
                position=metrics.iris_midpoint,
                magnitude=abs(position - self.previous_position),
                shape_metric=abs(metrics.left_iris_relative - metrics.right_iris_relative),
                kind='gaze_shift',
                limb_label=self.label,
            )
            self.last_event_time = now
            logger.debug("Gaze shift %s -> %s at %.1f ms",
                         self.direction, metrics.gaze_direction, now)

        self.direction = metrics.gaze_direction
        self.previous_position = position
        return event

    def _refractory_elapsed(self, now: float) -> bool:
        if self.last_event_time is None:
            return True
        return now - self.last_event_time > self.config.min_shift_interval_ms

    def reset(self):
        self.direction = None
        self.previous_position = None
        self.last_event_time = None
        self.last_frame_time = None
