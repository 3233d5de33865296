#!/usr/bin/env python3
"""
Finger Tap Assessment - simulated run of the tap detector and analytics.

Drives one or both hands of a simulated landmark source through the tap
detectors, records a timed trial per hand, and prints speed, rhythm and
fatigue metrics plus the bilateral comparison.
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from assessment.constants import (
    DEFAULT_SENSITIVITY, DEFAULT_TRIAL_DURATION, LIMB_LABELS, MAX_TRIAL_DURATION,
    MIN_TRIAL_DURATION, SENSITIVITY_PRESETS
)
from assessment.session import AssessmentSession
from analysis.session_analyzer import HAS_MATPLOTLIB, SessionAnalyzer
from analysis.statistics import PerformanceSummary
from tracking.calibration import DetectorConfig, load_detector_config
from tracking.simulated_source import SimulatedHandSource

logger = logging.getLogger(__name__)


class FingerTapAssessment:
    """Simulated finger tapping assessment."""

    def __init__(self, config: DetectorConfig, hands: List[str], duration: float,
                 sources: Dict[str, SimulatedHandSource]):
        """
        Initialize the assessment.

        Args:
            config: Detector settings shared by both hands
            hands: Limb labels to test
            duration: Trial duration in seconds
            sources: Simulated landmark source per limb
        """
        self.duration = duration
        self.hands = hands
        self.sources = sources
        self.session = AssessmentSession(config)
        self.analyzer = SessionAnalyzer()

    def run(self) -> SessionAnalyzer:
        """Run every hand's trial and analyze the results."""
        for hand in self.hands:
            self.session.start_trial(hand, self.duration, start_time=0.0)

        streams = {hand: self.sources[hand].frames(self.duration) for hand in self.hands}
        # Hands share the camera, so frames arrive interleaved
        while streams:
            for hand in list(streams):
                frame = next(streams[hand], None)
                if frame is None:
                    del streams[hand]
                    continue
                self.session.process_frame(hand, frame)

        self.session.tick(self.duration * 1000.0)

        for hand in self.hands:
            self.analyzer.add_summary(self.session.results(hand))
        return self.analyzer


def _print_summary(summary: PerformanceSummary):
    print(f"\n{summary.limb_label.upper()} HAND")
    print(f"  Total Taps:          {summary.event_count}")
    print(f"  Test Duration:       {summary.configured_duration:.0f} s")
    print(f"  Avg Speed:           {summary.average_rate:.2f} taps/sec ({summary.speed_classification})")
    print(f"  Percentile:          {summary.percentile_rank}")
    print(f"  Mean ITI:            {summary.mean_interval:.1f} ms")
    print(f"  Std Dev ITI:         {summary.std_dev_interval:.1f} ms")
    print(f"  CV of ITI:           {summary.coefficient_of_variation:.1f} %")
    print(f"  Rhythm:              {summary.rhythm_classification} (score {summary.rhythm_score:.1f})")
    print(f"  Speed 1st/2nd Half:  {summary.speed_first_half:.2f} / {summary.speed_second_half:.2f} taps/sec")
    print(f"  Speed Drop:          {summary.speed_drop_percent:.1f} %")
    print(f"  Fatigue:             {summary.fatigue_label}")
    print(f"  Rhythm 1st/2nd Half: {summary.rhythm_first_half:.1f} / {summary.rhythm_second_half:.1f} ms")


def _print_results(analyzer: SessionAnalyzer):
    print("=" * 50)
    print("  FINGER TAP ASSESSMENT RESULTS")
    print("=" * 50)
    for summary in analyzer.summaries.values():
        _print_summary(summary)

    report = analyzer.bilateral_report()
    if report is None:
        return
    print("\nBILATERAL COMPARISON")
    print(f"  Speed asymmetry:     {report.speed_asymmetry:.2f} taps/sec")
    print(f"  Rhythm asymmetry:    {report.rhythm_asymmetry:.1f}")
    print(f"  {report.summary}")
    for finding in report.findings:
        print(f"  - [{finding.severity}] {finding.description}")
        print(f"      {finding.clinical_note}")
    print("  Recommendations:")
    for recommendation in report.recommendations:
        print(f"    * {recommendation}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulated finger tapping assessment")
    parser.add_argument('--duration', type=float, default=DEFAULT_TRIAL_DURATION,
                        help=f"Trial duration in seconds ({MIN_TRIAL_DURATION}-{MAX_TRIAL_DURATION})")
    parser.add_argument('--hands', nargs='+', choices=LIMB_LABELS, default=list(LIMB_LABELS),
                        help="Hands to test")
    parser.add_argument('--sensitivity', choices=sorted(SENSITIVITY_PRESETS),
                        default=DEFAULT_SENSITIVITY, help="Detector sensitivity preset")
    parser.add_argument('--config', help="JSON detector config (overrides --sensitivity)")
    parser.add_argument('--rate-left', type=float, default=5.0, help="Simulated left taps/sec")
    parser.add_argument('--rate-right', type=float, default=5.5, help="Simulated right taps/sec")
    parser.add_argument('--fps', type=float, default=60.0, help="Simulated camera frame rate")
    parser.add_argument('--jitter', type=float, default=15.0, help="Tap timing jitter (ms std)")
    parser.add_argument('--fatigue', type=float, default=0.0,
                        help="Fractional slowdown by the end of the trial")
    parser.add_argument('--dropout', type=float, default=0.0, help="Probability of losing the hand per frame")
    parser.add_argument('--seed', type=int, default=None, help="Random seed")
    parser.add_argument('--json', action='store_true', help="Print results as JSON")
    parser.add_argument('--plot', help="Save an overview plot to this path")
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the simulated assessment."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not MIN_TRIAL_DURATION <= args.duration <= MAX_TRIAL_DURATION:
        parser.error(f"Please enter a valid duration between {MIN_TRIAL_DURATION} "
                     f"and {MAX_TRIAL_DURATION} seconds.")

    try:
        config = (load_detector_config(args.config) if args.config
                  else DetectorConfig.from_sensitivity(args.sensitivity))
    except ValueError as e:
        parser.error(str(e))

    hands = list(dict.fromkeys(args.hands))
    rates = {'left': args.rate_left, 'right': args.rate_right}
    sources = {}
    for i, hand in enumerate(hands):
        sources[hand] = SimulatedHandSource(
            limb_label=hand,
            tap_rate=rates[hand],
            fps=args.fps,
            finger=config.finger,
            jitter_ms=args.jitter,
            fatigue=args.fatigue,
            dropout=args.dropout,
            seed=None if args.seed is None else args.seed + i,
        )

    assessment = FingerTapAssessment(config, hands, args.duration, sources)
    analyzer = assessment.run()

    if args.json:
        print(json.dumps(analyzer.to_dict(), indent=2))
    else:
        _print_results(analyzer)

    if args.plot:
        if not HAS_MATPLOTLIB:
            logger.error("matplotlib is required for --plot")
            return 1
        fig = analyzer.plot_session_overview()
        fig.savefig(args.plot)
        print(f"\nPlot saved to: {args.plot}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
