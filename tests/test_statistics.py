"""
Motor-performance statistics tests.

Known-value scenarios are computed by hand; see the inline arithmetic for the
expected values.
"""

import math
import unittest

from analysis.statistics import (
    _round_half_up, analyze, analyze_timestamps, classify_fatigue, classify_rhythm,
    classify_speed, percentile_rank, rhythm_metrics, sample_std, speed_metrics
)
from tracking.trial_recorder import TrialRecorder
from tracking.types import TapEvent


def _numbers(data):
    """Every numeric value in a (nested) to_dict result."""
    for value in data.values():
        if isinstance(value, dict):
            yield from _numbers(value)
        elif isinstance(value, (list, tuple)):
            for item in value:
                if isinstance(item, dict):
                    yield from _numbers(item)
                elif isinstance(item, (int, float)):
                    yield item
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            yield value


class TestKnownScenarios(unittest.TestCase):

    def test_regular_tapping(self):
        summary = analyze_timestamps([0, 200, 400, 600, 800], 1)

        self.assertEqual(summary.event_count, 5)
        self.assertEqual(summary.intervals, (200, 200, 200, 200))
        self.assertEqual(summary.mean_interval, 200)
        self.assertEqual(summary.std_dev_interval, 0)
        self.assertEqual(summary.coefficient_of_variation, 0)
        self.assertEqual(summary.rhythm_classification, 'Excellent')
        self.assertEqual(summary.rhythm_score, 100)

        self.assertEqual(summary.average_rate, 5.0)
        self.assertEqual(summary.speed_classification, 'Good')
        self.assertEqual(summary.percentile_rank, 71)  # 100 * 5 / 7 = 71.4

        # Halves: 2 taps over 0.2 s vs 3 taps over 0.4 s
        self.assertAlmostEqual(summary.speed_first_half, 10.0)
        self.assertAlmostEqual(summary.speed_second_half, 7.5)
        self.assertAlmostEqual(summary.speed_drop_percent, 25.0)
        self.assertEqual(summary.fatigue_label, 'Significant Decrement')
        self.assertEqual(summary.rhythm_first_half, 0)
        self.assertEqual(summary.rhythm_second_half, 0)

    def test_irregular_tapping(self):
        summary = analyze_timestamps([0, 100, 300, 350, 900], 1)

        self.assertEqual(summary.intervals, (100, 200, 50, 550))
        self.assertEqual(summary.mean_interval, 225)
        # Squared deviations sum to 152500; sample variance 152500 / 3
        self.assertAlmostEqual(summary.std_dev_interval, math.sqrt(152500 / 3), places=6)
        self.assertAlmostEqual(summary.std_dev_interval, 225.46, places=2)
        self.assertAlmostEqual(summary.coefficient_of_variation, 100.2, places=1)
        self.assertEqual(summary.rhythm_classification, 'Irregular')
        self.assertEqual(summary.rhythm_score, 0)

    def test_fatigue(self):
        # Four taps over 0.75 s, then four taps spread over 1.5 s
        summary = analyze_timestamps([0, 250, 500, 750, 2000, 2500, 3000, 3500], 4)

        self.assertAlmostEqual(summary.speed_first_half, 4 / 0.75)
        self.assertAlmostEqual(summary.speed_second_half, 4 / 1.5)
        self.assertAlmostEqual(summary.speed_drop_percent, 50.0, places=6)
        self.assertEqual(summary.fatigue_label, 'Significant Decrement')
        self.assertEqual(summary.average_rate, 2.0)
        # Interval halves: [250, 250, 250] and [1250, 500, 500, 500]
        self.assertEqual(summary.rhythm_first_half, 0)
        self.assertAlmostEqual(summary.rhythm_second_half, 375.0)

    def test_speeding_up_is_stable(self):
        summary = analyze_timestamps([0, 400, 800, 1200, 1400, 1600, 1800, 2000], 2)
        self.assertLess(summary.speed_drop_percent, 0)
        self.assertEqual(summary.fatigue_label, 'Stable')

    def test_half_duration_floor(self):
        # All taps of the first half inside 10 ms: duration clamps to 0.1 s
        summary = analyze_timestamps([0, 5, 10, 15, 500, 700], 1)
        self.assertAlmostEqual(summary.speed_first_half, 3 / 0.1)


class TestDegenerateInputs(unittest.TestCase):

    def assertFinite(self, summary):
        for value in _numbers(summary.to_dict()):
            self.assertTrue(math.isfinite(value), value)

    def test_no_events(self):
        summary = analyze_timestamps([], 10, limb_label='left')

        self.assertEqual(summary.event_count, 0)
        self.assertEqual(summary.average_rate, 0)
        self.assertEqual(summary.intervals, ())
        self.assertEqual(summary.mean_interval, 0)
        self.assertEqual(summary.rhythm_classification, 'N/A')
        self.assertEqual(summary.fatigue_label, 'N/A')
        self.assertEqual(summary.rhythm_score, 0)
        self.assertEqual(summary.speed_classification, 'Significantly Impaired')
        self.assertEqual(summary.percentile_rank, 0)
        self.assertFinite(summary)

    def test_single_event(self):
        summary = analyze_timestamps([500], 10)
        self.assertEqual(summary.event_count, 1)
        self.assertEqual(summary.average_rate, 0.1)
        self.assertEqual(summary.intervals, ())
        self.assertEqual(summary.rhythm_classification, 'N/A')
        self.assertEqual(summary.rhythm_score, 0)
        self.assertFinite(summary)

    def test_two_events(self):
        summary = analyze_timestamps([0, 300], 10)
        self.assertEqual(summary.intervals, (300,))
        self.assertEqual(summary.std_dev_interval, 0)
        self.assertEqual(summary.coefficient_of_variation, 0)
        self.assertEqual(summary.rhythm_classification, 'Excellent')
        # A single perfectly regular interval agrees with the Excellent band
        self.assertEqual(summary.rhythm_score, 100)
        self.assertEqual(summary.fatigue_label, 'N/A')
        self.assertFinite(summary)

    def test_invalid_timestamps(self):
        with self.assertRaises(ValueError):
            analyze_timestamps([0, 200, 100], 1)
        with self.assertRaises(ValueError):
            analyze_timestamps([0, 0], 1)
        with self.assertRaises(ValueError):
            analyze_timestamps([0, float('nan')], 1)


class TestAnalyzeTrial(unittest.TestCase):

    def _trial(self, timestamps, duration=1):
        recorder = TrialRecorder(clock=lambda: 0.0)
        trial = recorder.start('right', duration)
        for t in timestamps:
            recorder.record_event(TapEvent(t, (0.4, 0.6), 1.2, 15.0, limb_label='right'))
        return recorder, trial

    def test_analyze_sealed_trial(self):
        recorder, trial = self._trial([0, 200, 400, 600, 800])
        recorder.stop('right')
        summary = analyze(trial)

        self.assertEqual(summary.limb_label, 'right')
        self.assertEqual(summary.configured_duration, 1.0)
        self.assertEqual(len(summary.events), 5)
        self.assertEqual(summary.to_dict()['events'][0]['position'], {'x': 0.4, 'y': 0.6})
        self.assertNotIn('events', summary.to_dict(include_events=False))

    def test_idempotent(self):
        recorder, trial = self._trial([0, 100, 300, 350, 900])
        recorder.stop('right')
        self.assertEqual(analyze(trial), analyze(trial))

    def test_open_trial_snapshot(self):
        recorder, trial = self._trial([0, 200])
        summary = analyze(trial)
        self.assertEqual(summary.event_count, 2)
        self.assertTrue(recorder.is_running('right'))


class TestClassification(unittest.TestCase):

    def test_rhythm_bands(self):
        self.assertEqual(classify_rhythm(4.99, 5), 'Excellent')
        self.assertEqual(classify_rhythm(5.0, 5), 'Good')
        self.assertEqual(classify_rhythm(14.9, 5), 'Fair')
        self.assertEqual(classify_rhythm(15.0, 5), 'Irregular')
        self.assertEqual(classify_rhythm(0, 1), 'N/A')

    def test_fatigue_bands(self):
        self.assertEqual(classify_fatigue(4.9, 10), 'Stable')
        self.assertEqual(classify_fatigue(5.0, 10), 'Minor Fatigue')
        self.assertEqual(classify_fatigue(15.0, 10), 'Significant Decrement')
        self.assertEqual(classify_fatigue(50.0, 3), 'N/A')

    def test_speed_bands(self):
        self.assertEqual(classify_speed(6.0), 'Excellent')
        self.assertEqual(classify_speed(5.99), 'Good')
        self.assertEqual(classify_speed(4.5), 'Good')
        self.assertEqual(classify_speed(3.0), 'Fair')
        self.assertEqual(classify_speed(2.0), 'Below Normal')
        self.assertEqual(classify_speed(1.99), 'Significantly Impaired')

    def test_percentile(self):
        self.assertEqual(percentile_rank(7.0), 100)
        self.assertEqual(percentile_rank(9.0), 100)
        self.assertEqual(percentile_rank(3.5), 50)
        self.assertEqual(percentile_rank(0), 0)
        self.assertEqual(_round_half_up(2.5), 3)
        self.assertEqual(_round_half_up(0.25, 1), 0.3)

    def test_sample_std(self):
        self.assertEqual(sample_std([]), 0)
        self.assertEqual(sample_std([42]), 0)
        self.assertAlmostEqual(sample_std([1, 2, 3, 4]), math.sqrt(5 / 3))


class TestRhythmAndSpeedMetrics(unittest.TestCase):

    def test_rhythm_metrics_population_variance(self):
        metrics = rhythm_metrics([0, 100, 300, 350, 900])
        # Population variance 152500 / 4 = 38125
        self.assertEqual(metrics.mean_interval, 225)
        self.assertEqual(metrics.standard_deviation, 195)
        self.assertEqual(metrics.coefficient_of_variation, 86.8)
        self.assertAlmostEqual(metrics.rhythm_score, 100 - math.sqrt(38125) / 225 * 100)
        self.assertEqual(metrics.consistency, 'Poor')

    def test_rhythm_metrics_regular(self):
        metrics = rhythm_metrics([0, 200, 400])
        self.assertEqual(metrics.standard_deviation, 0)
        self.assertEqual(metrics.rhythm_score, 100)
        self.assertEqual(metrics.consistency, 'Excellent')

    def test_rhythm_metrics_needs_three_taps(self):
        self.assertIsNone(rhythm_metrics([0, 200]))

    def test_speed_metrics(self):
        metrics = speed_metrics(43, 10)
        self.assertEqual(metrics.taps_per_second, 4.3)
        self.assertEqual(metrics.total_taps, 43)
        self.assertEqual(metrics.classification, 'Fair')
        self.assertEqual(metrics.percentile_rank, 61)

    def test_speed_metrics_zero_duration(self):
        metrics = speed_metrics(5, 0)
        self.assertEqual(metrics.taps_per_second, 0)
        self.assertEqual(metrics.classification, 'Significantly Impaired')


if __name__ == '__main__':
    unittest.main()
