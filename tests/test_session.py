"""
End-to-end assessment session tests.

Frames come from the synthetic fixtures or from SimulatedHandSource; the
session clock is injected so trial windows line up with frame timestamps.
"""

import threading
import unittest

import numpy as np

from assessment.session import AssessmentSession
from tests.fixtures.synthetic_hands import (
    CLOSED_EYE_HEIGHT, make_face_frame, make_hand_frame, make_hand_landmarks, tap_sequence
)
from tracking.eye_detectors import BlinkDetector
from tracking.simulated_source import SimulatedHandSource
from tracking.trial_recorder import AlreadyRunningError, NotRunningError, TrialError


class FakeClock:

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSimulatedAssessment(unittest.TestCase):

    def _run(self, session, sources, duration):
        streams = {label: source.frames(duration) for label, source in sources.items()}
        while streams:
            for label in list(streams):
                frame = next(streams[label], None)
                if frame is None:
                    del streams[label]
                else:
                    session.process_frame(label, frame)
        session.tick(duration * 1000)

    def test_bilateral_assessment(self):
        session = AssessmentSession(clock=FakeClock())
        for label in ('left', 'right'):
            session.start_trial(label, 5, start_time=0)

        self._run(session, {
            'left': SimulatedHandSource('left', tap_rate=3.0, seed=1),
            'right': SimulatedHandSource('right', tap_rate=5.0, seed=2),
        }, 5)

        self.assertFalse(session.is_running())
        right = session.results('right')
        left = session.results('left')
        self.assertEqual(right.event_count, 25)
        self.assertEqual(left.event_count, 15)
        self.assertAlmostEqual(right.average_rate, 5.0)
        self.assertAlmostEqual(left.average_rate, 3.0)
        self.assertEqual(right.speed_classification, 'Good')
        self.assertEqual(left.speed_classification, 'Fair')
        self.assertTrue(all(e.limb_label == 'right' for e in right.events))

        report = session.bilateral_report()
        self.assertEqual(report.get_finding('speed_asymmetry').severity, 'mild')
        self.assertIsNone(report.get_finding('bradykinesia'))

    def test_fatigued_hand(self):
        session = AssessmentSession(clock=FakeClock())
        session.start_trial('right', 10, start_time=0)
        self._run(session, {'right': SimulatedHandSource('right', tap_rate=6.0, fatigue=1.0, seed=3)}, 10)

        summary = session.results('right')
        self.assertGreater(summary.speed_drop_percent, 15)
        self.assertEqual(summary.fatigue_label, 'Significant Decrement')

    def test_dropout_keeps_detecting(self):
        session = AssessmentSession(clock=FakeClock())
        session.start_trial('right', 5, start_time=0)
        self._run(session, {'right': SimulatedHandSource('right', tap_rate=4.0, dropout=0.05, seed=4)}, 5)

        summary = session.results('right')
        detector = session.channels['right'].detector
        self.assertGreater(detector.frames_dropped, 0)
        self.assertGreater(summary.event_count, 10)
        self.assertLessEqual(summary.event_count, 20)

    def test_limbs_from_worker_threads(self):
        session = AssessmentSession(clock=FakeClock())
        for label in ('left', 'right'):
            session.start_trial(label, 3, start_time=0)

        def feed(label, rate):
            for frame in SimulatedHandSource(label, tap_rate=rate).frames(3):
                session.process_frame(label, frame)

        threads = [threading.Thread(target=feed, args=('left', 4.0)),
                   threading.Thread(target=feed, args=('right', 5.0))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        session.tick(3000)

        self.assertEqual(session.results('left').event_count, 12)
        self.assertEqual(session.results('right').event_count, 15)


class TestSessionControl(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.session = AssessmentSession(clock=self.clock)

    def test_events_recorded_only_while_running(self):
        frames = tap_sequence([100, 400], end_ms=600)
        events = [self.session.process_frame('right', f) for f in frames[:20]]
        self.assertEqual(sum(e is not None for e in events), 1)
        self.assertIsNone(self.session.trial('right'))

        self.session.start_trial('right', 1, start_time=200)
        for frame in frames[20:]:
            self.session.process_frame('right', frame)
        self.clock.now = 700
        trial = self.session.stop_trial('right')

        self.assertEqual(trial.timestamps, [400])
        self.assertEqual(trial.sealed_at, 700)
        self.assertEqual(self.session.results('right').event_count, 1)

    def test_trial_expires_on_frame_clock(self):
        self.session.start_trial('right', 1, start_time=0)
        for frame in tap_sequence([200, 600, 1200], end_ms=1500):
            self.session.process_frame('right', frame)

        self.assertFalse(self.session.is_running('right'))
        trial = self.session.trial('right')
        self.assertTrue(trial.sealed)
        self.assertEqual(trial.timestamps, [200, 600])

    def test_lifecycle_errors(self):
        with self.assertRaises(NotRunningError):
            self.session.stop_trial('left')
        self.session.start_trial('left', 5)
        with self.assertRaises(AlreadyRunningError):
            self.session.start_trial('left', 5)
        with self.assertRaises(TrialError):
            self.session.results('left')
        with self.assertRaises(TrialError):
            self.session.results('right')
        with self.assertRaises(ValueError):
            self.session.start_trial('right', -1)

    def test_first_frames_for_new_limb_from_many_threads(self):
        barrier = threading.Barrier(8)
        errors = []
        channels = []

        def feed(i):
            barrier.wait()
            try:
                self.session.process_frame('right', make_hand_frame(i))
                channels.append(self.session.channels['right'])
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=feed, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(list(self.session.channels), ['right'])
        self.assertTrue(all(c is channels[0] for c in channels))

    def test_duplicate_limb(self):
        self.session.add_limb('left')
        with self.assertRaises(ValueError):
            self.session.add_limb('left')

    def test_process_raw(self):
        self.assertIsNone(self.session.process_raw('right', make_hand_landmarks(220), 0))
        self.assertIsNotNone(self.session.process_raw('right', make_hand_landmarks(260), 10, 0.9))

        self.assertIsNone(self.session.process_raw('right', np.full((21, 3), np.nan), 20))
        self.assertIsNone(self.session.process_raw('right', [{'x': 0.1}], 30))
        self.assertEqual(self.session.frames_rejected, 2)

    def test_process_hands(self):
        self.session.add_limb('right')
        self.session.start_trial('right', 1, start_time=0)
        handedness = [[{'categoryName': 'Right', 'score': 0.95}]]

        self.session.process_hands([make_hand_landmarks(220)], handedness, 0)
        events = self.session.process_hands([make_hand_landmarks(260)], handedness, 10)

        self.assertEqual(set(events), {'right'})
        # Unregistered limbs are ignored
        self.assertNotIn('left', self.session.channels)
        self.assertEqual(self.session.trial('right').timestamps, [10])

    def test_blink_channel(self):
        self.session.add_limb('blink', BlinkDetector(label='blink'))
        self.session.start_trial('blink', 1, start_time=0)
        for t in range(0, 1000, 100):
            self.session.process_frame('blink', make_face_frame(t))
            self.session.process_frame('blink', make_face_frame(t + 50, eye_height=CLOSED_EYE_HEIGHT))
        self.session.tick(1000)

        summary = self.session.results('blink')
        self.assertEqual(summary.event_count, 5)
        self.assertEqual({e.kind for e in summary.events}, {'blink'})

    def test_tick_seals_all_limbs(self):
        self.session.start_trial('left', 1, start_time=0)
        self.session.start_trial('right', 2, start_time=0)
        self.session.process_frame('left', make_hand_frame(10))

        self.assertEqual(len(self.session.tick(1500)), 1)
        self.assertTrue(self.session.is_running())
        self.clock.now = 2500
        self.assertEqual(len(self.session.tick()), 1)
        self.assertFalse(self.session.is_running())


if __name__ == '__main__':
    unittest.main()
