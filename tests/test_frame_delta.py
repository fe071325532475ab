"""
Unit tests for frame-delta detection.
"""
import numpy as np
import pytest

from shuttletrack.core import DetectionMethod
from shuttletrack.detection import FrameDeltaConfig, FrameDeltaDetector


def make_frame(size: int = 200, channels: int = 3) -> np.ndarray:
    """Black test frame."""
    shape = (size, size, channels) if channels > 1 else (size, size)
    return np.zeros(shape, dtype=np.uint8)


def detect_block(x0: int, y0: int, n: int, detector=None):
    """Run a black baseline followed by a frame with a white n x n block."""
    detector = detector or FrameDeltaDetector()
    base = make_frame()
    assert detector.process_frame(base, 0.0) is None

    moved = base.copy()
    moved[y0:y0 + n, x0:x0 + n] = 255
    return detector.process_frame(moved, 0.1)


def test_first_frame_only_stores_baseline():
    """Test the first frame never produces an observation."""
    detector = FrameDeltaDetector()
    frame = make_frame()
    frame[50:100, 50:100] = 255

    assert detector.process_frame(frame, 0.0) is None
    assert detector.frames_processed == 1


def test_identical_frames_produce_no_observation():
    """Test static scene."""
    detector = FrameDeltaDetector()
    frame = make_frame()
    frame[50:90, 50:90] = 200

    detector.process_frame(frame, 0.0)
    for i in range(1, 5):
        assert detector.process_frame(frame.copy(), i * 0.1) is None

    assert detector.get_stats()["detections"] == 0


@pytest.mark.parametrize("x0,y0,n", [(40, 60, 40), (100, 30, 30), (21, 77, 25)])
def test_block_centroid_within_one_pixel(x0, y0, n):
    """Test the reported point is the block centre."""
    obs = detect_block(x0, y0, n)

    assert obs is not None
    assert obs.method == DetectionMethod.FRAME_DELTA
    assert obs.timestamp == 0.1
    assert abs(obs.screen_point[0] - (x0 + (n - 1) / 2)) <= 1.0
    assert abs(obs.screen_point[1] - (y0 + (n - 1) / 2)) <= 1.0


def test_confidence_monotone_and_capped():
    """Test confidence grows with block size up to 1.0."""
    confidences = []
    for n in (18, 24, 32, 48, 64, 80):
        obs = detect_block(40, 40, n)
        assert obs is not None
        confidences.append(obs.confidence)

    assert confidences == sorted(confidences)
    assert confidences[0] < 1.0
    assert confidences[-1] == 1.0


def test_box_radius_clamped_to_frame_fraction():
    """Test box radius never exceeds max_box_fraction of the width."""
    obs = detect_block(40, 40, 40)

    # sqrt(400) * 2 * 1.5 = 60 > 0.2 * 200
    assert obs.bounding_box.width == pytest.approx(80.0)
    assert obs.bounding_box.center == pytest.approx(obs.screen_point)


def test_global_motion_rejected():
    """Test whole-frame change (camera motion) is ignored."""
    detector = FrameDeltaDetector()
    detector.process_frame(make_frame(), 0.0)

    assert detector.process_frame(np.full((200, 200, 3), 255, dtype=np.uint8), 0.1) is None
    assert detector.get_stats()["rejections"]["global_motion"] == 1


def test_small_flicker_rejected():
    """Test changes below the pixel floor are noise."""
    detector = FrameDeltaDetector()
    assert detect_block(50, 50, 4, detector) is None
    assert detector.get_stats()["rejections"]["too_few_pixels"] == 1


def test_too_many_pixels_rejected():
    """Test changes above the pixel ceiling are rejected."""
    config = FrameDeltaConfig(max_changed_pixels=1000)
    detector = FrameDeltaDetector(config)

    assert detect_block(40, 40, 40, detector) is None
    assert detector.get_stats()["rejections"]["too_many_pixels"] == 1


def test_below_threshold_difference_ignored():
    """Test faint changes under motion_threshold."""
    detector = FrameDeltaDetector()
    base = make_frame()
    detector.process_frame(base, 0.0)

    faint = base.copy()
    faint[40:80, 40:80] = 50  # 150 summed < 0.25 * 765
    assert detector.process_frame(faint, 0.1) is None


def test_shape_change_resets_baseline():
    """Test a resolution change stores a new baseline instead of comparing."""
    detector = FrameDeltaDetector()
    detector.process_frame(make_frame(200), 0.0)

    bigger = make_frame(300)
    bigger[100:140, 100:140] = 255
    assert detector.process_frame(bigger, 0.1) is None

    # Next frame compares against the 300px baseline
    assert detector.process_frame(make_frame(300), 0.2) is not None


def test_grayscale_input():
    """Test single-channel buffers."""
    detector = FrameDeltaDetector()
    base = make_frame(channels=1)
    detector.process_frame(base, 0.0)

    moved = base.copy()
    moved[60:100, 60:100] = 255
    obs = detector.process_frame(moved, 0.1)

    assert obs is not None
    assert abs(obs.screen_point[0] - 79.5) <= 1.0


def test_reset_drops_baseline():
    """Test reset makes the next frame a baseline again."""
    detector = FrameDeltaDetector()
    detector.process_frame(make_frame(), 0.0)
    detector.reset()

    frame = make_frame()
    frame[40:80, 40:80] = 255
    assert detector.process_frame(frame, 0.1) is None
