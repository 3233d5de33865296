"""Ingestion of tracker output into fixed-shape landmark frames.

The landmark model is an external collaborator. Its results arrive either as
MediaPipe-style sequences (mappings or objects with ``x``/``y``/``z``) or as
``(N, 2)`` / ``(N, 3)`` arrays. Everything is validated here so the detectors
only ever see well-formed :class:`LandmarkFrame` values.
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from .types import Keypoint, LandmarkFrame

logger = logging.getLogger(__name__)


class MalformedFrameError(ValueError):
    """Raised when raw tracker output cannot be turned into a LandmarkFrame."""


def _finite(value, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedFrameError(f"{what} is not a number: {value!r}")
    if not math.isfinite(number):
        raise MalformedFrameError(f"{what} is not finite: {value!r}")
    return number


def _coords(point, index: int):
    """Pull (x, y, z) out of a mapping, an attribute object or a sequence."""
    if isinstance(point, dict):
        if 'x' not in point or 'y' not in point:
            raise MalformedFrameError(f"landmark {index} is missing x/y")
        return point['x'], point['y'], point.get('z', 0.0)
    if hasattr(point, 'x') and hasattr(point, 'y'):
        return point.x, point.y, getattr(point, 'z', 0.0)
    if isinstance(point, (list, tuple, np.ndarray)) and len(point) >= 2:
        return point[0], point[1], point[2] if len(point) > 2 else 0.0
    raise MalformedFrameError(f"landmark {index} has unsupported type {type(point).__name__}")


def normalize_handedness(label) -> Optional[str]:
    """Map tracker handedness labels ("Left", "RIGHT", ...) to "left"/"right"."""
    if label is None:
        return None
    text = str(label).strip().lower()
    if text in ('left', 'right'):
        return text
    return None


def frame_from_landmarks(
    landmarks,
    timestamp_ms: float,
    handedness: Optional[str] = None,
    confidence: Optional[float] = None,
) -> LandmarkFrame:
    """
    Build a validated frame from raw tracker landmarks.

    Args:
        landmarks: Sequence of landmarks, an array of shape (N, 2|3), or None
            when the entity was not detected in this frame
        timestamp_ms: Monotonic capture timestamp in milliseconds
        handedness: Optional handedness label
        confidence: Optional detection confidence

    Returns:
        LandmarkFrame (``present=False`` when no landmarks were supplied)

    Raises:
        MalformedFrameError: On missing, non-numeric or non-finite values
    """
    timestamp = _finite(timestamp_ms, "timestamp")
    score = _finite(confidence, "confidence") if confidence is not None else None
    label = normalize_handedness(handedness)

    # Legacy solutions API wraps the points in a NormalizedLandmarkList
    landmarks = getattr(landmarks, 'landmark', landmarks)

    if landmarks is None or len(landmarks) == 0:
        return LandmarkFrame(timestamp_ms=timestamp, handedness=label,
                             confidence=score, present=False)

    if isinstance(landmarks, np.ndarray):
        if landmarks.ndim != 2 or landmarks.shape[1] < 2:
            raise MalformedFrameError(f"landmark array has shape {landmarks.shape}")
        if not np.all(np.isfinite(landmarks)):
            raise MalformedFrameError("landmark array contains NaN or infinite values")

    keypoints: List[Keypoint] = []
    for i, point in enumerate(landmarks):
        x, y, z = _coords(point, i)
        keypoints.append(Keypoint(
            x=_finite(x, f"landmark {i} x"),
            y=_finite(y, f"landmark {i} y"),
            z=_finite(z, f"landmark {i} z"),
        ))

    return LandmarkFrame(
        timestamp_ms=timestamp,
        keypoints=tuple(keypoints),
        handedness=label,
        confidence=score,
    )


def _handedness_entry(entry):
    """Extract (label, score) from the handedness formats the trackers emit."""
    if entry is None:
        return None, None
    if isinstance(entry, (list, tuple)):
        return _handedness_entry(entry[0]) if entry else (None, None)
    if isinstance(entry, dict):
        label = entry.get('label', entry.get('categoryName', entry.get('category_name')))
        return label, entry.get('score')
    label = (getattr(entry, 'label', None)
             or getattr(entry, 'category_name', None)
             or getattr(entry, 'categoryName', None))
    return label, getattr(entry, 'score', None)


def frames_from_hands(
    hand_landmarks: Optional[Sequence],
    handedness: Optional[Sequence],
    timestamp_ms: float,
) -> Dict[str, LandmarkFrame]:
    """
    Split a multi-hand tracker result into one frame per limb.

    Hands that fail validation are logged and left out; limbs that were not
    detected get a non-present frame so the caller can still tick them.

    Args:
        hand_landmarks: One landmark sequence per detected hand
        handedness: One handedness entry per detected hand (same order)
        timestamp_ms: Monotonic capture timestamp in milliseconds

    Returns:
        Dictionary mapping "left"/"right" to a LandmarkFrame
    """
    frames: Dict[str, LandmarkFrame] = {}
    hand_landmarks = hand_landmarks or []
    handedness = handedness or []

    for i, landmarks in enumerate(hand_landmarks):
        label, score = _handedness_entry(handedness[i] if i < len(handedness) else None)
        limb = normalize_handedness(label)
        if limb is None:
            logger.debug("Skipping hand %d with unknown handedness %r", i, label)
            continue
        if limb in frames:
            logger.debug("Duplicate %s hand in frame at %.1f ms, keeping the first", limb, timestamp_ms)
            continue
        try:
            frames[limb] = frame_from_landmarks(landmarks, timestamp_ms, limb, score)
        except MalformedFrameError as e:
            logger.debug("Dropping malformed %s hand: %s", limb, e)

    for limb in ('left', 'right'):
        if limb not in frames:
            frames[limb] = LandmarkFrame(timestamp_ms=float(timestamp_ms),
                                         handedness=limb, present=False)

    return frames
