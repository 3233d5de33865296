"""Finger tap detection from a stream of hand landmark frames."""

import logging
import math
from enum import Enum
from typing import Dict, Optional

from assessment.constants import (
    CANVAS_HEIGHT, CANVAS_WIDTH, INDEX_MCP, INDEX_TIP, MAX_TAP_MAGNITUDE,
    PINKY_TIP, STABLE_EXTENSION_PX, THUMB_TIP, WRIST
)
from .calibration import DetectorConfig
from .types import LandmarkFrame, TapEvent

logger = logging.getLogger(__name__)


class DetectorState(Enum):
    """Edge-detection state of a single limb."""
    IDLE = 'idle'            # no prior tip sample
    ARMED = 'armed'          # prior sample held, ready to fire
    REFRACTORY = 'refractory'  # an event just fired


class TapDetector:
    """
    Stateful per-limb tap detector.

    Feed frames in capture order with :meth:`process_frame`; each call returns
    at most one TapEvent. A tap is a fast downward travel of the fingertip
    while the finger is not curled, at least ``min_tap_interval_ms`` after the
    previous tap on this limb.
    """

    def __init__(self, limb_label: Optional[str] = None, config: Optional[DetectorConfig] = None):
        """
        Initialize the detector.

        Args:
            limb_label: Label stamped on emitted events ("left", "right", ...)
            config: Detector settings (defaults to the "normal" preset)
        """
        self.limb_label = limb_label
        self.config = config or DetectorConfig()

        self.state = DetectorState.IDLE
        self.previous_tip_y: Optional[float] = None
        self.last_event_time: Optional[float] = None
        self.last_frame_time: Optional[float] = None
        self.last_visible_time: Optional[float] = None

        # Counters for diagnostics
        self.frames_processed = 0
        self.frames_dropped = 0
        self.events_emitted = 0

    def process_frame(self, frame: LandmarkFrame) -> Optional[TapEvent]:
        """
        Run one frame through the state machine.

        Args:
            frame: Landmark frame for this limb

        Returns:
            TapEvent if a tap fired on this frame, otherwise None
        """
        now = frame.timestamp_ms

        if self.last_frame_time is not None and now <= self.last_frame_time:
            logger.debug("%s: dropping out-of-order frame at %.1f ms", self._name, now)
            self.frames_dropped += 1
            return None
        self.last_frame_time = now

        tip_idx, dip_idx, pip_idx = self.config.landmark_indices
        if not frame.has_points((tip_idx, dip_idx, pip_idx)):
            # Limb not visible: keep the edge-detection memory untouched
            self.frames_dropped += 1
            return None

        self._check_occlusion_timeout(now)
        self.last_visible_time = now
        self.frames_processed += 1

        height = self.config.canvas_height
        tip = frame.keypoints[tip_idx]
        tip_y = tip.y * height
        dip_y = frame.keypoints[dip_idx].y * height
        pip_y = frame.keypoints[pip_idx].y * height

        # Positive when the tip sits above its joints (extended finger)
        curvature = (dip_y + pip_y) / 2 - tip_y

        self._update_refractory(now)

        event = None
        if self.previous_tip_y is not None:
            movement = tip_y - self.previous_tip_y
            if (movement > self.config.tap_threshold
                    and curvature < self.config.max_curvature
                    and self._refractory_elapsed(now)):
                event = TapEvent(
                    timestamp=now,
                    position=(tip.x, tip.y),
                    magnitude=min(movement / self.config.tap_threshold, MAX_TAP_MAGNITUDE),
                    shape_metric=curvature,
                    kind='tap',
                    limb_label=self.limb_label,
                )
                self.last_event_time = now
                self.state = DetectorState.REFRACTORY
                self.events_emitted += 1
                logger.debug("%s: tap at %.1f ms (dy=%.1f, curvature=%.1f)",
                             self._name, now, movement, curvature)

        if self.state == DetectorState.IDLE:
            self.state = (DetectorState.ARMED if self._refractory_elapsed(now)
                          else DetectorState.REFRACTORY)
        self.previous_tip_y = tip_y

        return event

    def _refractory_elapsed(self, now: float) -> bool:
        if self.last_event_time is None:
            return True
        return now - self.last_event_time > self.config.min_tap_interval_ms

    def _update_refractory(self, now: float):
        """Leave the refractory state once the interval has elapsed."""
        if self.state == DetectorState.REFRACTORY and self._refractory_elapsed(now):
            self.state = DetectorState.ARMED

    def _check_occlusion_timeout(self, now: float):
        """Forget the previous tip sample after a long occlusion, if configured."""
        timeout = self.config.occlusion_reset_ms
        if timeout is None or self.last_visible_time is None:
            return
        if now - self.last_visible_time > timeout:
            logger.debug("%s: limb hidden for %.0f ms, resetting edge memory",
                         self._name, now - self.last_visible_time)
            self.previous_tip_y = None
            self.state = DetectorState.IDLE

    @property
    def _name(self) -> str:
        return self.limb_label or 'detector'

    def adjust_sensitivity(self, sensitivity: str):
        """Switch to the "low" / "normal" / "high" preset, keeping the state."""
        self.config = self.config.with_sensitivity(sensitivity)

    def reset(self):
        """Reset tracking state."""
        self.state = DetectorState.IDLE
        self.previous_tip_y = None
        self.last_event_time = None
        self.last_frame_time = None
        self.last_visible_time = None


def hand_metrics(frame: LandmarkFrame,
                 canvas_width: int = CANVAS_WIDTH,
                 canvas_height: int = CANVAS_HEIGHT) -> Optional[Dict]:
    """
    Calculate posture metrics for a hand frame.

    Args:
        frame: Hand frame with the 21 MediaPipe landmarks
        canvas_width: Canvas width used to scale normalized coordinates
        canvas_height: Canvas height used to scale normalized coordinates

    Returns:
        Dictionary with hand span, centre, finger extension, orientation and
        stability label, or None when the hand is not visible
    """
    if not frame.has_points((WRIST, THUMB_TIP, INDEX_MCP, INDEX_TIP, PINKY_TIP)):
        return None

    points = frame.keypoints
    thumb, pinky = points[THUMB_TIP], points[PINKY_TIP]
    index_tip, index_mcp, wrist = points[INDEX_TIP], points[INDEX_MCP], points[WRIST]

    hand_span = math.hypot((thumb.x - pinky.x) * canvas_width,
                           (thumb.y - pinky.y) * canvas_height)
    finger_extension = (index_mcp.y - index_tip.y) * canvas_height
    center = (
        sum(p.x for p in points) / len(points),
        sum(p.y for p in points) / len(points),
    )
    orientation = math.degrees(math.atan2(
        (index_mcp.y - wrist.y) * canvas_height,
        (index_mcp.x - wrist.x) * canvas_width,
    ))

    return {
        'hand_span': hand_span,
        'hand_center': center,
        'finger_extension': finger_extension,
        'hand_orientation': orientation,
        'stability': 'Good' if finger_extension > STABLE_EXTENSION_PX else 'Unstable',
    }
