"""Timed trial recording: lifecycle of one measurement window per limb."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .types import TapEvent

logger = logging.getLogger(__name__)


class TrialError(Exception):
    """Base class for trial lifecycle errors."""


class AlreadyRunningError(TrialError):
    """A trial for this limb is already open."""


class NotRunningError(TrialError):
    """No open trial matches the request."""


class InvalidDurationError(TrialError, ValueError):
    """Trial duration must be a positive number of seconds."""


def monotonic_ms() -> float:
    """Default recorder clock: monotonic time in milliseconds."""
    return time.monotonic() * 1000


@dataclass
class Trial:
    """Events recorded for one limb during one timed window."""
    limb_label: str
    start_time: float  # ms, same clock as the event timestamps
    configured_duration: float  # seconds
    _events: List[TapEvent] = field(default_factory=list, repr=False)
    sealed: bool = False
    sealed_at: Optional[float] = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.configured_duration * 1000

    @property
    def events(self) -> Tuple[TapEvent, ...]:
        return tuple(self._events)

    @property
    def timestamps(self) -> List[float]:
        return [e.timestamp for e in self._events]

    @property
    def intervals(self) -> List[float]:
        """Inter-event intervals in ms (length max(0, n - 1))."""
        if len(self._events) < 2:
            return []
        return np.diff(np.asarray(self.timestamps, dtype=float)).tolist()

    @property
    def last_timestamp(self) -> Optional[float]:
        return self._events[-1].timestamp if self._events else None

    def append(self, event: TapEvent):
        if self.sealed:
            raise TrialError(f"Trial for {self.limb_label} is sealed")
        self._events.append(event)

    def seal(self, when: Optional[float] = None):
        if not self.sealed:
            self.sealed = True
            self.sealed_at = when

    def to_dict(self) -> Dict:
        return {
            'limb_label': self.limb_label,
            'start_time': self.start_time,
            'configured_duration': self.configured_duration,
            'sealed': self.sealed,
            'sealed_at': self.sealed_at,
            'events': [e.to_dict() for e in self._events],
        }


class TrialRecorder:
    """
    Owns the open trials (at most one per limb) and seals them on stop or expiry.

    All times are milliseconds on the clock that stamps the frames. The default
    clock is :func:`time.monotonic`; pass ``clock`` to share another one.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Initialize the recorder.

        Args:
            clock: Callable returning the current time in ms
        """
        self.clock = clock or monotonic_ms
        self.open_trials: Dict[str, Trial] = {}
        self.completed: Dict[str, Trial] = {}  # latest sealed trial per limb

    def start(self, limb_label: str, duration: float, start_time: Optional[float] = None) -> Trial:
        """
        Open a new trial for a limb.

        Args:
            limb_label: Limb being measured ("left", "right", ...)
            duration: Trial length in seconds
            start_time: Optional start instant in ms (defaults to the clock)

        Returns:
            The open Trial

        Raises:
            AlreadyRunningError: If the limb already has an open trial
            InvalidDurationError: If duration is not positive
        """
        if limb_label in self.open_trials:
            raise AlreadyRunningError(f"A trial for {limb_label} is already running")
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise InvalidDurationError(f"Invalid trial duration: {duration!r}")
        if not np.isfinite(duration) or duration <= 0:
            raise InvalidDurationError(f"Trial duration must be positive, got {duration}")

        now = self.clock() if start_time is None else float(start_time)
        trial = Trial(limb_label=limb_label, start_time=now, configured_duration=duration)
        self.open_trials[limb_label] = trial
        logger.info("Trial started: %s for %.1fs", limb_label, duration)
        return trial

    def record_event(self, event: TapEvent, limb_label: Optional[str] = None) -> bool:
        """
        Append an event to the matching open trial.

        Out-of-order, duplicate and out-of-window events are logged and dropped.
        An event past the end of the window seals the trial first.

        Args:
            event: Event to record
            limb_label: Target limb (defaults to ``event.limb_label``, then to
                the only open trial)

        Returns:
            True if the event was appended
        """
        trial = self._find_open(limb_label or event.limb_label)
        if trial is None:
            logger.debug("No open trial for event at %.1f ms, dropping", event.timestamp)
            return False

        if event.timestamp > trial.end_time:
            self._seal(trial, trial.end_time)
            logger.debug("Event at %.1f ms is past the %s window, dropping",
                         event.timestamp, trial.limb_label)
            return False

        if event.timestamp < trial.start_time:
            logger.debug("Event at %.1f ms precedes the %s trial start, dropping",
                         event.timestamp, trial.limb_label)
            return False

        last = trial.last_timestamp
        if last is not None and event.timestamp <= last:
            logger.debug("Out-of-order event at %.1f ms (last %.1f) for %s, dropping",
                         event.timestamp, last, trial.limb_label)
            return False

        trial.append(event)
        return True

    def stop(self, limb_label: Optional[str] = None) -> Trial:
        """
        Seal an open trial early and return it.

        Raises:
            NotRunningError: If no matching trial is open
        """
        if limb_label is None and len(self.open_trials) > 1:
            raise TrialError("Several trials are running; name the limb to stop")
        trial = self._find_open(limb_label)
        if trial is None:
            raise NotRunningError(
                f"No trial running for {limb_label}" if limb_label else "No trial running"
            )
        now = self.clock()
        self._seal(trial, min(now, trial.end_time))
        return trial

    def tick(self, now: Optional[float] = None) -> List[Trial]:
        """
        Seal every open trial whose window has elapsed.

        Args:
            now: Current time in ms (defaults to the clock)

        Returns:
            Trials sealed by this call
        """
        now = self.clock() if now is None else now
        expired = [t for t in self.open_trials.values() if now >= t.end_time]
        for trial in expired:
            self._seal(trial, trial.end_time)
        return expired

    def is_running(self, limb_label: Optional[str] = None) -> bool:
        if limb_label is None:
            return bool(self.open_trials)
        return limb_label in self.open_trials

    def get_trial(self, limb_label: str) -> Optional[Trial]:
        """Open trial for a limb, or its most recently sealed one."""
        if limb_label in self.open_trials:
            return self.open_trials[limb_label]
        return self.completed.get(limb_label)

    def _find_open(self, limb_label: Optional[str]) -> Optional[Trial]:
        if limb_label is not None:
            return self.open_trials.get(limb_label)
        if len(self.open_trials) == 1:
            return next(iter(self.open_trials.values()))
        return None

    def _seal(self, trial: Trial, when: float):
        trial.seal(when)
        self.open_trials.pop(trial.limb_label, None)
        self.completed[trial.limb_label] = trial
        logger.info("Trial sealed: %s with %d events", trial.limb_label, len(trial.events))
