"""Assessment session: per-limb detectors and trial recorders driven frame by frame."""

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence

from analysis.bilateral import BilateralReport, compare
from analysis.statistics import PerformanceSummary, analyze
from tracking.calibration import DetectorConfig
from tracking.landmarks import MalformedFrameError, frame_from_landmarks, frames_from_hands
from tracking.tap_detector import TapDetector
from tracking.trial_recorder import NotRunningError, Trial, TrialError, TrialRecorder, monotonic_ms
from tracking.types import LandmarkFrame, TapEvent

logger = logging.getLogger(__name__)


class LimbChannel:
    """Detector and recorder owned by one limb; touched by one frame at a time."""

    def __init__(self, label: str, detector, clock: Callable[[], float]):
        self.label = label
        self.detector = detector
        self.recorder = TrialRecorder(clock=clock)
        self.lock = threading.Lock()

    def process(self, frame: LandmarkFrame) -> Optional[TapEvent]:
        with self.lock:
            event = self.detector.process_frame(frame)
            if self.recorder.is_running(self.label):
                if event is not None:
                    self.recorder.record_event(event, self.label)
                # Seal once the frame clock reaches the end of the window
                self.recorder.tick(frame.timestamp_ms)
            return event


class AssessmentSession:
    """
    Caller-owned assessment session.

    Each limb gets its own detector and recorder. The caller drives the session
    by passing frames in capture order; nothing here starts threads or reads a
    camera. Frames for different limbs may be processed from different threads.
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the session.

        Args:
            config: Detector settings used for limbs added without a detector
            clock: Callable returning the current time in ms, shared with the
                frame timestamps (defaults to the monotonic clock)
        """
        self.config = config or DetectorConfig()
        self.clock = clock or monotonic_ms
        self.channels: Dict[str, LimbChannel] = {}
        self._channels_lock = threading.Lock()
        self.frames_rejected = 0

    def add_limb(self, label: str, detector=None) -> LimbChannel:
        """
        Register a limb (or an eye channel) with its own detector.

        Args:
            label: Limb label ("left", "right", "blink", ...)
            detector: Object with ``process_frame(frame)``; defaults to a
                TapDetector using the session config
        """
        with self._channels_lock:
            if label in self.channels:
                raise ValueError(f"Limb {label} already registered")
            return self._register(label, detector)

    def _register(self, label: str, detector=None) -> LimbChannel:
        # Caller holds _channels_lock
        detector = detector or TapDetector(label, self.config)
        channel = LimbChannel(label, detector, self.clock)
        self.channels[label] = channel
        return channel

    def _channel(self, label: str) -> LimbChannel:
        """Channel for a limb, registered with a default detector on first use."""
        channel = self.channels.get(label)
        if channel is not None:
            return channel
        with self._channels_lock:
            channel = self.channels.get(label)
            if channel is None:
                channel = self._register(label)
            return channel

    def start_trial(self, label: str, duration: float, start_time: Optional[float] = None) -> Trial:
        """Start a timed trial for one limb; see TrialRecorder.start."""
        channel = self._channel(label)
        with channel.lock:
            return channel.recorder.start(label, duration, start_time)

    def stop_trial(self, label: str) -> Trial:
        """Seal the limb's open trial and return it."""
        channel = self.channels.get(label)
        if channel is None:
            raise NotRunningError(f"No trial running for {label}")
        with channel.lock:
            return channel.recorder.stop(label)

    def is_running(self, label: Optional[str] = None) -> bool:
        if label is not None:
            channel = self.channels.get(label)
            return channel is not None and channel.recorder.is_running(label)
        return any(c.recorder.is_running() for c in self.channels.values())

    def tick(self, now: Optional[float] = None) -> List[Trial]:
        """Seal every trial whose window has elapsed."""
        now = self.clock() if now is None else now
        sealed: List[Trial] = []
        for channel in list(self.channels.values()):
            with channel.lock:
                sealed.extend(channel.recorder.tick(now))
        return sealed

    def process_frame(self, label: str, frame: LandmarkFrame) -> Optional[TapEvent]:
        """
        Run one validated frame through the limb's detector.

        Detected events are recorded when the limb has an open trial; they are
        returned either way.
        """
        return self._channel(label).process(frame)

    def process_raw(self, label: str, landmarks, timestamp_ms: float,
                    confidence: Optional[float] = None) -> Optional[TapEvent]:
        """Validate raw tracker landmarks and process them; malformed frames are dropped."""
        try:
            frame = frame_from_landmarks(landmarks, timestamp_ms, confidence=confidence)
        except MalformedFrameError as e:
            self.frames_rejected += 1
            logger.debug("Dropping malformed %s frame: %s", label, e)
            return None
        return self.process_frame(label, frame)

    def process_hands(self, hand_landmarks: Optional[Sequence], handedness: Optional[Sequence],
                      timestamp_ms: float) -> Dict[str, TapEvent]:
        """
        Route a multi-hand tracker result to the left and right channels.

        Returns:
            Dictionary of limb label to the event detected on this frame
        """
        events: Dict[str, TapEvent] = {}
        for label, frame in frames_from_hands(hand_landmarks, handedness, timestamp_ms).items():
            if label not in self.channels:
                continue
            event = self.process_frame(label, frame)
            if event is not None:
                events[label] = event
        return events

    def trial(self, label: str) -> Optional[Trial]:
        channel = self.channels.get(label)
        return channel.recorder.get_trial(label) if channel else None

    def results(self, label: str) -> PerformanceSummary:
        """
        Analyze the limb's most recent sealed trial.

        Raises:
            TrialError: If the limb has no sealed trial
        """
        trial = self.trial(label)
        if trial is None or not trial.sealed:
            raise TrialError(f"No completed trial for {label}")
        return analyze(trial)

    def bilateral_report(self, label_a: str = 'left', label_b: str = 'right') -> BilateralReport:
        """Compare the completed trials of two limbs."""
        return compare(self.results(label_a), self.results(label_b))
