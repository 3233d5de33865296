"""Landmark ingestion, event detection and trial recording."""

from .types import Keypoint, LandmarkFrame, TapEvent
from .landmarks import MalformedFrameError, frame_from_landmarks, frames_from_hands
from .calibration import DetectorConfig, EyeDetectorConfig, load_detector_config, save_detector_config
from .tap_detector import DetectorState, TapDetector, hand_metrics
from .eye_detectors import BlinkDetector, GazeShiftDetector, compute_eye_metrics
from .trial_recorder import (
    AlreadyRunningError, InvalidDurationError, NotRunningError, Trial, TrialError, TrialRecorder
)
from .simulated_source import SimulatedHandSource
