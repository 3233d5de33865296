"""
Motor-performance statistics over recorded tap timestamps.

Everything here is a pure function of a trial's event timestamps and its
configured duration:

- Speed: taps per second, absolute speed band, percentile against a 7 taps/s
  reference
- Rhythm: inter-tap interval (ITI) mean, sample standard deviation and
  coefficient of variation, with a CV band and a 0-100 rhythm score
- Fatigue: tapping speed in the first half of the taps versus the second half,
  plus ITI variability per half

Degenerate inputs (too few taps for a metric) produce the documented sentinel
values (0 or "N/A"), never NaN or infinity.
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from assessment.constants import (
    CONSISTENCY_BANDS, CONSISTENCY_FALLBACK, FATIGUE_BANDS, FATIGUE_FALLBACK,
    MIN_HALF_DURATION_S, NOT_AVAILABLE, REFERENCE_TAP_RATE, RHYTHM_BANDS,
    RHYTHM_FALLBACK, SPEED_BANDS, SPEED_FALLBACK
)
from tracking.trial_recorder import Trial
from tracking.types import TapEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceSummary:
    """Speed, rhythm and fatigue metrics for one trial."""
    limb_label: Optional[str]
    event_count: int
    configured_duration: float  # seconds

    # Speed
    average_rate: float  # events per second
    speed_classification: str
    percentile_rank: int

    # Rhythm (intervals in ms)
    intervals: Tuple[float, ...]
    mean_interval: float
    std_dev_interval: float
    coefficient_of_variation: float  # %
    rhythm_classification: str
    rhythm_score: float  # 0-100

    # Fatigue / decrement
    speed_first_half: float
    speed_second_half: float
    speed_drop_percent: float
    fatigue_label: str
    rhythm_first_half: float  # ITI std, ms
    rhythm_second_half: float

    events: Tuple[TapEvent, ...] = ()

    def to_dict(self, include_events: bool = True) -> Dict:
        data = asdict(self)
        data['intervals'] = list(self.intervals)
        if include_events:
            data['events'] = [e.to_dict() for e in self.events]
        else:
            data.pop('events')
        return data


@dataclass(frozen=True)
class RhythmMetrics:
    """Rhythm consistency using the population ITI variance."""
    mean_interval: int
    standard_deviation: int
    coefficient_of_variation: float
    rhythm_score: float
    consistency: str


@dataclass(frozen=True)
class SpeedMetrics:
    """Tapping speed with its clinical band."""
    taps_per_second: float
    total_taps: int
    duration: float
    classification: str
    percentile_rank: int


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _upper_band(value: float, bands: Sequence[Tuple[float, str]], fallback: str) -> str:
    for limit, label in bands:
        if value < limit:
            return label
    return fallback


def sample_std(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1); 0 with fewer than two values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=1))


def compute_intervals(timestamps: Sequence[float]) -> List[float]:
    """Consecutive differences of the timestamps (ms)."""
    if len(timestamps) < 2:
        return []
    return np.diff(np.asarray(timestamps, dtype=float)).tolist()


def classify_rhythm(cv: float, event_count: int) -> str:
    """CV band: <5 Excellent, <10 Good, <15 Fair, else Irregular."""
    if event_count <= 1:
        return NOT_AVAILABLE
    return _upper_band(cv, RHYTHM_BANDS, RHYTHM_FALLBACK)


def classify_fatigue(speed_drop: float, event_count: int) -> str:
    """Speed drop band: <5% Stable, <15% Minor Fatigue, else Significant Decrement."""
    if event_count <= 3:
        return NOT_AVAILABLE
    return _upper_band(speed_drop, FATIGUE_BANDS, FATIGUE_FALLBACK)


def classify_speed(rate: float) -> str:
    """Absolute speed band in taps per second."""
    for limit, label in SPEED_BANDS:
        if rate >= limit:
            return label
    return SPEED_FALLBACK


def percentile_rank(rate: float, reference_rate: float = REFERENCE_TAP_RATE) -> int:
    if reference_rate <= 0:
        return 0
    return int(min(100, _round_half_up(100 * rate / reference_rate)))


def fatigue_analysis(timestamps: Sequence[float], intervals: Sequence[float]) -> Dict[str, float]:
    """
    Compare the first half of the taps with the second half.

    Requires more than three taps; otherwise every value is 0.

    Returns:
        Dictionary with speed_first_half, speed_second_half,
        speed_drop_percent, rhythm_first_half and rhythm_second_half
    """
    result = {
        'speed_first_half': 0.0,
        'speed_second_half': 0.0,
        'speed_drop_percent': 0.0,
        'rhythm_first_half': 0.0,
        'rhythm_second_half': 0.0,
    }
    n = len(timestamps)
    if n <= 3:
        return result

    mid = n // 2
    first_duration = max((timestamps[mid - 1] - timestamps[0]) / 1000, MIN_HALF_DURATION_S)
    second_duration = max((timestamps[n - 1] - timestamps[mid]) / 1000, MIN_HALF_DURATION_S)
    speed_first = mid / first_duration
    speed_second = (n - mid) / second_duration

    result['speed_first_half'] = speed_first
    result['speed_second_half'] = speed_second
    if speed_first > 0:
        result['speed_drop_percent'] = (speed_first - speed_second) / speed_first * 100

    # Interval series split one earlier than the tap series
    result['rhythm_first_half'] = sample_std(intervals[:mid - 1])
    result['rhythm_second_half'] = sample_std(intervals[mid - 1:])
    return result


def analyze_timestamps(
    timestamps: Sequence[float],
    duration: float,
    limb_label: Optional[str] = None,
    events: Sequence[TapEvent] = (),
) -> PerformanceSummary:
    """
    Calculate all single-trial metrics from tap timestamps.

    Args:
        timestamps: Strictly increasing tap instants in ms
        duration: Configured trial duration in seconds
        limb_label: Optional limb the taps belong to
        events: Optional raw events carried through to the summary

    Returns:
        PerformanceSummary

    Raises:
        ValueError: If the timestamps are not strictly increasing or not finite
    """
    stamps = [float(t) for t in timestamps]
    if not all(math.isfinite(t) for t in stamps):
        raise ValueError("Tap timestamps must be finite")
    if any(b <= a for a, b in zip(stamps, stamps[1:])):
        raise ValueError("Tap timestamps must be strictly increasing")

    count = len(stamps)
    rate = count / duration if count > 0 and duration > 0 else 0.0

    intervals = compute_intervals(stamps)
    mean_interval = float(np.mean(intervals)) if intervals else 0.0
    std_interval = sample_std(intervals)
    cv = std_interval / mean_interval * 100 if mean_interval > 0 else 0.0
    rhythm_score = max(0.0, 100.0 - cv) if count >= 2 else 0.0

    fatigue = fatigue_analysis(stamps, intervals)

    return PerformanceSummary(
        limb_label=limb_label,
        event_count=count,
        configured_duration=float(duration),
        average_rate=rate,
        speed_classification=classify_speed(rate),
        percentile_rank=percentile_rank(rate),
        intervals=tuple(intervals),
        mean_interval=mean_interval,
        std_dev_interval=std_interval,
        coefficient_of_variation=cv,
        rhythm_classification=classify_rhythm(cv, count),
        rhythm_score=rhythm_score,
        speed_first_half=fatigue['speed_first_half'],
        speed_second_half=fatigue['speed_second_half'],
        speed_drop_percent=fatigue['speed_drop_percent'],
        fatigue_label=classify_fatigue(fatigue['speed_drop_percent'], count),
        rhythm_first_half=fatigue['rhythm_first_half'],
        rhythm_second_half=fatigue['rhythm_second_half'],
        events=tuple(events),
    )


def analyze(trial: Trial) -> PerformanceSummary:
    """Calculate all single-trial metrics for a recorded trial."""
    if not trial.sealed:
        logger.debug("Analyzing open trial for %s (snapshot)", trial.limb_label)
    summary = analyze_timestamps(
        trial.timestamps,
        trial.configured_duration,
        limb_label=trial.limb_label,
        events=trial.events,
    )
    logger.info("%s: %d taps, %.2f taps/sec, CV %.1f%%, rhythm %s, fatigue %s",
                trial.limb_label, summary.event_count, summary.average_rate,
                summary.coefficient_of_variation, summary.rhythm_classification,
                summary.fatigue_label)
    return summary


def rhythm_metrics(timestamps: Sequence[float]) -> Optional[RhythmMetrics]:
    """
    Rhythm consistency using the population ITI variance.

    Args:
        timestamps: Tap instants in ms

    Returns:
        RhythmMetrics, or None with fewer than three taps
    """
    if len(timestamps) < 3:
        return None

    intervals = np.asarray(compute_intervals(timestamps), dtype=float)
    mean_interval = float(intervals.mean())
    std = float(intervals.std())
    cv = std / mean_interval * 100 if mean_interval > 0 else 0.0

    return RhythmMetrics(
        mean_interval=int(_round_half_up(mean_interval)),
        standard_deviation=int(_round_half_up(std)),
        coefficient_of_variation=_round_half_up(cv, 1),
        rhythm_score=max(0.0, 100.0 - cv),
        consistency=_upper_band(cv, CONSISTENCY_BANDS, CONSISTENCY_FALLBACK),
    )


def speed_metrics(tap_count: int, duration: float) -> SpeedMetrics:
    """Speed in taps per second with its clinical band and percentile."""
    rate = tap_count / duration if duration > 0 else 0.0
    return SpeedMetrics(
        taps_per_second=_round_half_up(rate, 1),
        total_taps=tap_count,
        duration=duration,
        classification=classify_speed(rate),
        percentile_rank=percentile_rank(rate),
    )
