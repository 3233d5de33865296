"""
Assessment result analyzer.

Collects the per-limb performance summaries of an assessment, converts them
to pandas DataFrames and plots inter-tap intervals. Use in Jupyter notebooks
or standalone.

Usage:
    from analysis.session_analyzer import SessionAnalyzer

    analyzer = SessionAnalyzer()
    analyzer.add_trial(trial)
    analyzer.to_dataframe()
    analyzer.plot_session_overview()
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from tracking.trial_recorder import Trial
from .bilateral import BilateralReport, compare
from .statistics import PerformanceSummary, analyze

logger = logging.getLogger(__name__)

# Plotting imports - plotting is unavailable without matplotlib
try:
    import matplotlib.pyplot as plt
    from matplotlib.gridspec import GridSpec
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False
    logger.warning("matplotlib not installed; plotting disabled. Install with: pip install matplotlib")


LIMB_COLORS = {
    'left': '#4D96FF',
    'right': '#FF6B6B',
}
DEFAULT_COLOR = '#6BCB77'

SUMMARY_COLUMNS = [
    'limb', 'taps', 'duration_s', 'taps_per_sec', 'speed_class', 'percentile',
    'mean_iti_ms', 'std_iti_ms', 'cv_pct', 'rhythm', 'rhythm_score',
    'speed_first_half', 'speed_second_half', 'speed_drop_pct', 'fatigue',
    'rhythm_first_half_ms', 'rhythm_second_half_ms',
]


def summary_row(summary: PerformanceSummary) -> Dict:
    """Flatten a summary into one table row."""
    return {
        'limb': summary.limb_label,
        'taps': summary.event_count,
        'duration_s': summary.configured_duration,
        'taps_per_sec': summary.average_rate,
        'speed_class': summary.speed_classification,
        'percentile': summary.percentile_rank,
        'mean_iti_ms': summary.mean_interval,
        'std_iti_ms': summary.std_dev_interval,
        'cv_pct': summary.coefficient_of_variation,
        'rhythm': summary.rhythm_classification,
        'rhythm_score': summary.rhythm_score,
        'speed_first_half': summary.speed_first_half,
        'speed_second_half': summary.speed_second_half,
        'speed_drop_pct': summary.speed_drop_percent,
        'fatigue': summary.fatigue_label,
        'rhythm_first_half_ms': summary.rhythm_first_half,
        'rhythm_second_half_ms': summary.rhythm_second_half,
    }


def summaries_to_dataframe(summaries: Sequence[PerformanceSummary]) -> pd.DataFrame:
    """One row per summary, columns as in SUMMARY_COLUMNS."""
    return pd.DataFrame([summary_row(s) for s in summaries], columns=SUMMARY_COLUMNS)


def events_to_dataframe(summary: PerformanceSummary) -> pd.DataFrame:
    """
    One row per event with its interval to the previous event.

    The first event has no previous interval (NaN in the ``iti_ms`` column).
    """
    rows = []
    previous = None
    for i, event in enumerate(summary.events):
        rows.append({
            'tap': i + 1,
            'timestamp_ms': event.timestamp,
            'x': event.position[0],
            'y': event.position[1],
            'magnitude': event.magnitude,
            'shape_metric': event.shape_metric,
            'kind': event.kind,
            'iti_ms': event.timestamp - previous if previous is not None else float('nan'),
        })
        previous = event.timestamp
    return pd.DataFrame(rows, columns=['tap', 'timestamp_ms', 'x', 'y', 'magnitude',
                                       'shape_metric', 'kind', 'iti_ms'])


class SessionAnalyzer:
    """Analyzer for the trials of one assessment."""

    def __init__(self):
        self.summaries: Dict[str, PerformanceSummary] = {}

    def add_trial(self, trial: Trial) -> PerformanceSummary:
        """Analyze a trial and keep its summary under the trial's limb label."""
        summary = analyze(trial)
        self.add_summary(summary)
        return summary

    def add_summary(self, summary: PerformanceSummary):
        label = summary.limb_label or f'trial_{len(self.summaries) + 1}'
        if label in self.summaries:
            logger.warning("Replacing existing summary for %s", label)
        self.summaries[label] = summary

    def get_summary(self, limb_label: str) -> Optional[PerformanceSummary]:
        return self.summaries.get(limb_label)

    def bilateral_report(self, label_a: str = 'left', label_b: str = 'right') -> Optional[BilateralReport]:
        """Compare two limbs, or None when either has not been analyzed."""
        a = self.summaries.get(label_a)
        b = self.summaries.get(label_b)
        if a is None or b is None:
            return None
        return compare(a, b)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert summaries to a pandas DataFrame."""
        return summaries_to_dataframe(list(self.summaries.values()))

    def to_dict(self) -> Dict:
        report = self.bilateral_report()
        return {
            'trials': {label: s.to_dict() for label, s in self.summaries.items()},
            'bilateral': report.to_dict() if report else None,
        }

    # ========== Plotting Methods ==========

    def plot_session_overview(self, figsize: Tuple[int, int] = (12, 8)):
        """
        Plot an overview of the assessment.

        Shows:
        - Inter-tap intervals of every limb
        - Taps per second per limb
        - Rhythm score per limb
        """
        if not HAS_MATPLOTLIB:
            raise ImportError("matplotlib is required for plotting")

        if not self.summaries:
            logger.info("No trials to plot")
            return None

        fig = plt.figure(figsize=figsize)
        gs = GridSpec(2, 2, figure=fig, hspace=0.35, wspace=0.3)

        ax1 = fig.add_subplot(gs[0, :])
        for summary in self.summaries.values():
            plot_intervals(summary, ax=ax1)
        ax1.set_title('Inter-Tap Intervals')

        ax2 = fig.add_subplot(gs[1, 0])
        self._plot_bars(ax2, 'average_rate', 'Taps / sec', 'Tapping Speed')

        ax3 = fig.add_subplot(gs[1, 1])
        self._plot_bars(ax3, 'rhythm_score', 'Rhythm score', 'Rhythm Score')
        ax3.set_ylim(0, 100)

        return fig

    def _plot_bars(self, ax, attribute: str, ylabel: str, title: str):
        labels = list(self.summaries)
        values = [getattr(self.summaries[label], attribute) for label in labels]
        colors = [LIMB_COLORS.get(label, DEFAULT_COLOR) for label in labels]
        ax.bar(labels, values, color=colors, edgecolor='black')
        for i, value in enumerate(values):
            ax.text(i, value, f'{value:.1f}', ha='center', va='bottom', fontsize=9)
        ax.set_ylabel(ylabel)
        ax.set_title(title)


def plot_intervals(summary: PerformanceSummary, ax=None, figsize: Tuple[int, int] = (10, 4)):
    """
    Line plot of the inter-tap intervals of one summary.

    Args:
        summary: Analyzed trial
        ax: Optional axes to draw into
        figsize: Figure size when a new figure is created

    Returns:
        The axes drawn into
    """
    if not HAS_MATPLOTLIB:
        raise ImportError("matplotlib is required for plotting")

    if ax is None:
        _, ax = plt.subplots(figsize=figsize)

    intervals: List[float] = list(summary.intervals)
    label = summary.limb_label or 'trial'
    color = LIMB_COLORS.get(summary.limb_label, DEFAULT_COLOR)

    if not intervals:
        ax.text(0.5, 0.5, 'Not enough data to plot ITIs.', ha='center', va='center',
                transform=ax.transAxes, color='#64748b')
        return ax

    x = list(range(1, len(intervals) + 1))
    ax.plot(x, intervals, marker='o', markersize=3, color=color, label=f'{label} ITI (ms)')
    ax.fill_between(x, intervals, alpha=0.1, color=color)
    ax.axhline(summary.mean_interval, color=color, linestyle='--', alpha=0.5)
    ax.set_xlabel('Tap Interval Number')
    ax.set_ylabel('Interval Duration (ms)')
    ax.legend()
    ax.grid(True, alpha=0.3)
    return ax
