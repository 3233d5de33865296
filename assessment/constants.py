"""Assessment constants and configuration settings."""

# Canvas settings (detector thresholds are expressed in these pixel units)
CANVAS_WIDTH = 640
CANVAS_HEIGHT = 480

# Hand landmark indices (MediaPipe 21-point hand model)
WRIST = 0
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_TIP = 8
PINKY_TIP = 20
HAND_LANDMARK_COUNT = 21

# (tip, distal joint, proximal joint) per finger
FINGER_LANDMARKS = {
    'thumb': (4, 3, 2),
    'index': (8, 7, 6),
    'middle': (12, 11, 10),
    'ring': (16, 15, 14),
    'pinky': (20, 19, 18),
}
DEFAULT_FINGER = 'index'

# Tap detection defaults
TAP_THRESHOLD = 25  # px of downward tip travel between frames
MIN_TAP_INTERVAL_MS = 150
MAX_CURVATURE = 40  # px; above this the finger counts as curled
MAX_TAP_MAGNITUDE = 3.0

SENSITIVITY_PRESETS = {
    'low': {
        'tap_threshold': 35,
        'min_tap_interval_ms': 200,
    },
    'normal': {
        'tap_threshold': TAP_THRESHOLD,
        'min_tap_interval_ms': MIN_TAP_INTERVAL_MS,
    },
    'high': {
        'tap_threshold': 15,
        'min_tap_interval_ms': 100,
    },
}
DEFAULT_SENSITIVITY = 'normal'

# Hand stability (finger extension above MCP, px)
STABLE_EXTENSION_PX = 30

# Face mesh landmark indices (478 points with iris refinement)
FACE_LANDMARK_COUNT = 478
LEFT_IRIS_CENTER = 468
RIGHT_IRIS_CENTER = 473
LEFT_EYE_INNER = 133
LEFT_EYE_OUTER = 33
RIGHT_EYE_INNER = 362
RIGHT_EYE_OUTER = 263
LEFT_EYE_TOP = 159
LEFT_EYE_BOTTOM = 145
RIGHT_EYE_TOP = 386
RIGHT_EYE_BOTTOM = 374

# Eye event detection
EAR_BLINK_THRESHOLD = 0.2
MIN_BLINK_INTERVAL_MS = 150
MIN_GAZE_SHIFT_INTERVAL_MS = 150
GAZE_LOW_BAND = 0.3
GAZE_HIGH_BAND = 0.7
CONJUGATE_TOLERANCE = 0.1

# Trial settings
DEFAULT_TRIAL_DURATION = 10  # seconds
MIN_TRIAL_DURATION = 5  # seconds, enforced by the CLI only
MAX_TRIAL_DURATION = 60

# Rhythm classification (CV %, upper bounds, exclusive)
RHYTHM_BANDS = [
    (5, 'Excellent'),
    (10, 'Good'),
    (15, 'Fair'),
]
RHYTHM_FALLBACK = 'Irregular'

# Consistency bands of the population-variance rhythm variant
CONSISTENCY_BANDS = [
    (15, 'Excellent'),
    (25, 'Good'),
    (40, 'Fair'),
]
CONSISTENCY_FALLBACK = 'Poor'

# Fatigue classification (speed drop %, upper bounds, exclusive)
FATIGUE_BANDS = [
    (5, 'Stable'),
    (15, 'Minor Fatigue'),
]
FATIGUE_FALLBACK = 'Significant Decrement'
MIN_HALF_DURATION_S = 0.1

# Speed classification (taps/sec, lower bounds, inclusive)
SPEED_BANDS = [
    (6.0, 'Excellent'),
    (4.5, 'Good'),
    (3.0, 'Fair'),
    (2.0, 'Below Normal'),
]
SPEED_FALLBACK = 'Significantly Impaired'
REFERENCE_TAP_RATE = 7.0  # taps/sec treated as the 100th percentile

NOT_AVAILABLE = 'N/A'

# Bilateral thresholds (exclusive)
SPEED_ASYMMETRY_MILD = 1.5
SPEED_ASYMMETRY_SIGNIFICANT = 2.5
RHYTHM_ASYMMETRY_MILD = 25
RHYTHM_ASYMMETRY_SIGNIFICANT = 40
BRADYKINESIA_MILD = 3.0
BRADYKINESIA_SIGNIFICANT = 2.0
RHYTHM_VARIABILITY_MILD = 40
RHYTHM_VARIABILITY_SIGNIFICANT = 25

# Limb labels
LIMB_LABELS = ['left', 'right']
