"""Blink and gaze-shift detector tests on synthetic face meshes."""

import unittest

import numpy as np

from tests.fixtures.synthetic_hands import (
    CLOSED_EYE_HEIGHT, make_face_frame, make_face_landmarks
)
from tracking.eye_detectors import (
    BlinkDetector, GazeShiftDetector, classify_gaze, compute_eye_metrics
)
from tracking.landmarks import frame_from_landmarks


def closed(t):
    return make_face_frame(t, eye_height=CLOSED_EYE_HEIGHT)


class TestEyeMetrics(unittest.TestCase):

    def test_open_eyes(self):
        metrics = compute_eye_metrics(make_face_frame(0))
        self.assertAlmostEqual(metrics.left_ear, 0.3)
        self.assertAlmostEqual(metrics.right_ear, 0.3)
        self.assertAlmostEqual(metrics.average_iris_position, 0.5)
        self.assertEqual(metrics.gaze_direction, 'center')
        self.assertTrue(metrics.conjugate_movement)

    def test_disconjugate_gaze(self):
        metrics = compute_eye_metrics(make_face_frame(0, gaze=0.5, right_gaze=0.8))
        self.assertFalse(metrics.conjugate_movement)

    def test_classify_gaze(self):
        self.assertEqual(classify_gaze(0.1, 0.5), 'right')
        self.assertEqual(classify_gaze(0.9, 0.5), 'left')
        self.assertEqual(classify_gaze(0.5, 0.1), 'up')
        self.assertEqual(classify_gaze(0.1, 0.9), 'down')

    def test_incomplete_mesh_dropped(self):
        frame = frame_from_landmarks(make_face_landmarks()[:468], 0)
        self.assertIsNone(compute_eye_metrics(frame))

    def test_degenerate_geometry_dropped(self):
        frame = frame_from_landmarks(np.full((478, 3), 0.5), 0)
        self.assertIsNone(compute_eye_metrics(frame))


class TestBlinkDetector(unittest.TestCase):

    def setUp(self):
        self.detector = BlinkDetector()

    def test_blink_on_closure(self):
        self.assertIsNone(self.detector.process_frame(make_face_frame(0)))
        event = self.detector.process_frame(closed(10))

        self.assertIsNotNone(event)
        self.assertEqual(event.kind, 'blink')
        self.assertEqual(event.limb_label, 'eyes')
        self.assertAlmostEqual(event.shape_metric, 0.04)
        self.assertEqual(event.magnitude, 3.0)

    def test_one_event_per_closure(self):
        self.detector.process_frame(make_face_frame(0))
        self.assertIsNotNone(self.detector.process_frame(closed(10)))
        self.assertIsNone(self.detector.process_frame(closed(20)))
        self.assertIsNone(self.detector.process_frame(closed(30)))

    def test_starting_closed_does_not_fire(self):
        self.assertIsNone(self.detector.process_frame(closed(0)))
        self.assertIsNone(self.detector.process_frame(closed(10)))

    def test_refractory(self):
        self.detector.process_frame(make_face_frame(0))
        self.detector.process_frame(closed(10))
        self.detector.process_frame(make_face_frame(30))
        self.assertIsNone(self.detector.process_frame(closed(40)))

        self.detector.process_frame(make_face_frame(200))
        self.assertIsNotNone(self.detector.process_frame(closed(210)))

    def test_partial_closure_magnitude(self):
        self.detector.process_frame(make_face_frame(0))
        event = self.detector.process_frame(make_face_frame(10, eye_height=0.015))
        self.assertAlmostEqual(event.magnitude, 0.2 / 0.15)


class TestGazeShiftDetector(unittest.TestCase):

    def setUp(self):
        self.detector = GazeShiftDetector()

    def test_shift_on_direction_change(self):
        self.assertIsNone(self.detector.process_frame(make_face_frame(0)))
        self.assertIsNone(self.detector.process_frame(make_face_frame(10)))
        event = self.detector.process_frame(make_face_frame(20, gaze=0.1))

        self.assertIsNotNone(event)
        self.assertEqual(event.kind, 'gaze_shift')
        self.assertAlmostEqual(event.magnitude, 0.4)
        self.assertAlmostEqual(event.shape_metric, 0.0)

    def test_refractory_and_stable_direction(self):
        self.detector.process_frame(make_face_frame(0))
        self.assertIsNotNone(self.detector.process_frame(make_face_frame(10, gaze=0.1)))
        # Too soon after the previous shift
        self.assertIsNone(self.detector.process_frame(make_face_frame(20, gaze=0.9)))
        # Same direction as the last frame
        self.assertIsNone(self.detector.process_frame(make_face_frame(300, gaze=0.9)))
        self.assertIsNotNone(self.detector.process_frame(make_face_frame(400)))

    def test_vertical_shift(self):
        self.detector.process_frame(make_face_frame(0))
        event = self.detector.process_frame(make_face_frame(10, vertical=0.1))
        self.assertIsNotNone(event)

    def test_out_of_order_frame(self):
        self.detector.process_frame(make_face_frame(10))
        self.assertIsNone(self.detector.process_frame(make_face_frame(5, gaze=0.1)))


if __name__ == '__main__':
    unittest.main()
