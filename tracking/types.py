"""Value types shared by the detectors, the trial recorder and the analysis layer."""

from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional, Tuple


Point2 = Tuple[float, float]


@dataclass(frozen=True)
class Keypoint:
    """A single landmark in normalized image coordinates."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class LandmarkFrame:
    """Keypoints of one tracked entity (a hand or a face) at one capture instant."""

    timestamp_ms: float
    keypoints: Tuple[Keypoint, ...] = ()
    handedness: Optional[str] = None  # "left" / "right" (may be None)
    confidence: Optional[float] = None
    present: bool = True

    @property
    def is_visible(self) -> bool:
        return self.present and len(self.keypoints) > 0

    def get(self, index: int) -> Optional[Keypoint]:
        if 0 <= index < len(self.keypoints):
            return self.keypoints[index]
        return None

    def has_points(self, indices: Iterable[int]) -> bool:
        """True when the frame is visible and every index is available."""
        if not self.is_visible:
            return False
        count = len(self.keypoints)
        return all(0 <= i < count for i in indices)


@dataclass(frozen=True)
class TapEvent:
    """A discrete detected motion event (tap, blink or gaze shift)."""

    timestamp: float  # ms, monotonic
    position: Point2
    magnitude: float
    shape_metric: float
    kind: str = 'tap'
    limb_label: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['position'] = {'x': self.position[0], 'y': self.position[1]}
        return data
