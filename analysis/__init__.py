"""Analysis tools for finger tapping and other repeated-motion trials."""

from .statistics import (
    PerformanceSummary,
    RhythmMetrics,
    SpeedMetrics,
    analyze,
    analyze_timestamps,
    rhythm_metrics,
    speed_metrics,
)
from .bilateral import BilateralReport, Finding, compare
from .session_analyzer import (
    SessionAnalyzer,
    events_to_dataframe,
    plot_intervals,
    summaries_to_dataframe,
)

__all__ = [
    'PerformanceSummary',
    'RhythmMetrics',
    'SpeedMetrics',
    'analyze',
    'analyze_timestamps',
    'rhythm_metrics',
    'speed_metrics',
    'BilateralReport',
    'Finding',
    'compare',
    'SessionAnalyzer',
    'events_to_dataframe',
    'plot_intervals',
    'summaries_to_dataframe',
]
