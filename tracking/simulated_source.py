"""Simulated hand landmark source for running assessments without a camera."""

import logging
from typing import Iterator, List, Optional

import numpy as np

from assessment.constants import DEFAULT_FINGER, FINGER_LANDMARKS, HAND_LANDMARK_COUNT
from .landmarks import frame_from_landmarks
from .types import LandmarkFrame

logger = logging.getLogger(__name__)

# Resting hand, normalized image coordinates, fingers pointing up
_FINGER_X = {'thumb': 0.38, 'index': 0.45, 'middle': 0.50, 'ring': 0.55, 'pinky': 0.60}
_CHAIN_Y = (0.60, 0.52, 0.49, 0.46)  # base joint, proximal, distal, tip
_WRIST = (0.50, 0.80)


def _rest_pose() -> np.ndarray:
    """21 x 3 landmark array of a relaxed, extended hand."""
    pose = np.zeros((HAND_LANDMARK_COUNT, 3), dtype=float)
    pose[0, :2] = _WRIST
    for finger, (tip, dip, pip) in FINGER_LANDMARKS.items():
        base = pip - 1
        x = _FINGER_X[finger]
        for idx, y in zip((base, pip, dip, tip), _CHAIN_Y):
            pose[idx, 0] = x
            pose[idx, 1] = y
    return pose


class SimulatedHandSource:
    """
    Synthetic tapping hand.

    Taps are scheduled at ``tap_rate`` per second; each tap is a single frame
    where the tapping fingertip drops by ``amplitude`` (normalized units)
    before returning to rest on the next frame.
    """

    def __init__(
        self,
        limb_label: str = 'right',
        tap_rate: float = 5.0,
        fps: float = 60.0,
        amplitude: float = 0.1,
        finger: str = DEFAULT_FINGER,
        jitter_ms: float = 0.0,
        fatigue: float = 0.0,
        dropout: float = 0.0,
        noise: float = 0.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize the simulated source.

        Args:
            limb_label: Handedness stamped on the frames
            tap_rate: Initial taps per second
            fps: Frame rate of the simulated camera
            amplitude: Fingertip drop per tap (normalized units)
            finger: Tapping finger
            jitter_ms: Standard deviation of tap timing noise
            fatigue: Fractional slowdown reached at the end of the run
                (0.5 means intervals are 50% longer at the end)
            dropout: Probability that a frame loses the hand
            noise: Standard deviation of positional noise (normalized units)
            seed: Random seed for reproducible runs
        """
        if tap_rate <= 0 or fps <= 0:
            raise ValueError("tap_rate and fps must be positive")
        if finger not in FINGER_LANDMARKS:
            raise ValueError(f"Unknown finger {finger!r}")
        if not 0.0 <= dropout < 1.0:
            raise ValueError("dropout must be in [0, 1)")

        self.limb_label = limb_label
        self.tap_rate = tap_rate
        self.fps = fps
        self.amplitude = amplitude
        self.finger = finger
        self.jitter_ms = jitter_ms
        self.fatigue = fatigue
        self.dropout = dropout
        self.noise = noise
        self.rng = np.random.default_rng(seed)
        self._rest = _rest_pose()

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.fps

    def tap_times(self, duration: float, start_time: float = 0.0) -> np.ndarray:
        """Scheduled tap instants (ms) within ``duration`` seconds."""
        duration_ms = duration * 1000.0
        base_interval = 1000.0 / self.tap_rate
        times: List[float] = []
        t = base_interval / 2
        while t < duration_ms:
            jitter = self.rng.normal(0.0, self.jitter_ms) if self.jitter_ms > 0 else 0.0
            times.append(start_time + min(max(t + jitter, 0.0), duration_ms))
            t += base_interval * (1.0 + self.fatigue * t / duration_ms)
        return np.sort(np.asarray(times))

    def frames(self, duration: float, start_time: float = 0.0) -> Iterator[LandmarkFrame]:
        """
        Generate frames covering ``duration`` seconds.

        Args:
            duration: Run length in seconds
            start_time: Timestamp of the first frame in ms

        Yields:
            LandmarkFrame for each simulated camera frame
        """
        dt = self.frame_interval_ms
        n_frames = int(duration * 1000.0 / dt) + 1
        tap_frames = set(
            int(np.ceil((t - start_time) / dt)) for t in self.tap_times(duration, start_time)
        )
        tip_idx = FINGER_LANDMARKS[self.finger][0]
        logger.debug("Simulating %d frames with %d taps for %s",
                     n_frames, len(tap_frames), self.limb_label)

        for i in range(n_frames):
            timestamp = start_time + i * dt
            if self.dropout > 0 and self.rng.random() < self.dropout:
                yield frame_from_landmarks(None, timestamp, self.limb_label)
                continue

            pose = self._rest.copy()
            if self.noise > 0:
                pose[:, :2] += self.rng.normal(0.0, self.noise, size=(HAND_LANDMARK_COUNT, 2))
            if i in tap_frames:
                pose[tip_idx, 1] += self.amplitude
            yield frame_from_landmarks(pose, timestamp, self.limb_label, confidence=0.95)
