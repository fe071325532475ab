"""
Unit tests for colour threshold detection.
"""
import cv2
import numpy as np
import pytest

from shuttletrack.core import DetectionMethod
from shuttletrack.detection import ColorThresholdConfig, ColorThresholdDetector, bgr_to_hue

YELLOW = (0, 230, 255)  # BGR
BLUE = (255, 0, 0)


def frame_with_circle(radius: int = 20, color=YELLOW, center=(100, 100), size: int = 200) -> np.ndarray:
    """Black frame with one filled circle."""
    image = np.zeros((size, size, 3), dtype=np.uint8)
    cv2.circle(image, center, radius, color, -1)
    return image


def test_detects_yellow_circle():
    """Test centroid and confidence for a round target."""
    detector = ColorThresholdDetector()
    obs = detector.process_frame(frame_with_circle(), 0.5)

    assert obs is not None
    assert obs.method == DetectionMethod.COLOR_THRESHOLD
    assert obs.timestamp == 0.5
    assert abs(obs.screen_point[0] - 100) <= 4
    assert abs(obs.screen_point[1] - 100) <= 4
    assert obs.confidence >= 0.8
    assert 30 <= obs.bounding_box.equivalent_diameter <= 150


def test_grayscale_produces_nothing():
    """Test buffers without colour are skipped."""
    detector = ColorThresholdDetector()
    gray = cv2.cvtColor(frame_with_circle(), cv2.COLOR_BGR2GRAY)

    assert detector.process_frame(gray, 0.0) is None
    assert detector.get_stats()["rejections"]["not_color"] == 1


def test_wrong_hue_ignored():
    """Test a blue object does not match the yellow target."""
    detector = ColorThresholdDetector()
    assert detector.process_frame(frame_with_circle(color=BLUE), 0.0) is None


def test_low_saturation_ignored():
    """Test white pixels fail the saturation floor."""
    detector = ColorThresholdDetector()
    assert detector.process_frame(frame_with_circle(color=(255, 255, 255)), 0.0) is None


def test_too_few_matches():
    """Test tiny blobs below min_match_count."""
    detector = ColorThresholdDetector()
    assert detector.process_frame(frame_with_circle(radius=4), 0.0) is None


def test_oversized_blob_rejected():
    """Test blobs larger than max_diameter."""
    detector = ColorThresholdDetector()
    assert detector.process_frame(frame_with_circle(radius=90), 0.0) is None
    assert detector.get_stats()["rejections"]["implausible_size"] == 1


def test_elongated_blob_has_lower_confidence():
    """Test confidence follows the aspect ratio."""
    image = np.zeros((200, 200, 3), dtype=np.uint8)
    cv2.rectangle(image, (40, 90), (140, 110), YELLOW, -1)

    obs = ColorThresholdDetector().process_frame(image, 0.0)

    assert obs is not None
    assert obs.confidence == 0.0  # Aspect ratio ~5


def test_hue_wraparound():
    """Test red target matches hues just below 360 degrees."""
    detector = ColorThresholdDetector()
    detector.set_target_color((0, 0, 255))
    assert detector.config.target_hue == pytest.approx(0.0, abs=1e-3)

    # Hue ~350 degrees
    obs = detector.process_frame(frame_with_circle(color=(43, 0, 255)), 0.0)
    assert obs is not None


def test_set_detection_parameters():
    """Test runtime threshold tuning."""
    detector = ColorThresholdDetector()
    detector.set_detection_parameters(hue_tolerance_deg=5.0, value_min=0.9)

    assert detector.config.hue_tolerance_deg == 5.0
    assert detector.config.value_min == 0.9
    assert detector.config.saturation_min == 0.4


def test_bgr_to_hue():
    """Test hue helper on primary colours."""
    assert bgr_to_hue((0, 255, 0)) == pytest.approx(120 / 360, abs=1e-3)
    assert bgr_to_hue((255, 0, 0)) == pytest.approx(240 / 360, abs=1e-3)


def test_custom_sample_step():
    """Test denser sampling still finds the target."""
    config = ColorThresholdConfig(sample_step=1, min_match_count=50)
    obs = ColorThresholdDetector(config).process_frame(frame_with_circle(), 0.0)

    assert obs is not None
    assert abs(obs.screen_point[0] - 100) <= 1
