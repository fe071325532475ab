"""
Unit tests for ML region-proposal detection with fake inference sessions.
"""
import threading
from types import SimpleNamespace

import numpy as np
import pytest

from shuttletrack.core import DetectionMethod
from shuttletrack.detection import (
    DetectorKind,
    RegionProposalConfig,
    RegionProposalDetector,
    create_detector,
    non_max_suppression,
)


class FakeSession:
    """Mimics onnxruntime.InferenceSession with a fixed output."""

    def __init__(self, output: np.ndarray):
        self.output = output
        self.calls = []

    def get_inputs(self):
        return [SimpleNamespace(name="images")]

    def run(self, output_names, feeds):
        self.calls.append(feeds)
        return [self.output]


class BlockingSession(FakeSession):
    """Session whose run() waits until released."""

    def __init__(self, output: np.ndarray):
        super().__init__(output)
        self.release = threading.Event()

    def run(self, output_names, feeds):
        self.release.wait(timeout=5.0)
        return super().run(output_names, feeds)


class FailingSession(FakeSession):
    def run(self, output_names, feeds):
        raise RuntimeError("bad model")


def make_output(num_anchors: int = 100) -> np.ndarray:
    """[1, 4 + 2, A] output with three confident anchors."""
    output = np.zeros((1, 6, num_anchors), dtype=np.float32)
    # cx, cy, w, h, class0, class1
    output[0, :, 0] = [320, 320, 64, 64, 0.9, 0.0]
    output[0, :, 1] = [324, 322, 64, 64, 0.8, 0.0]  # Overlaps anchor 0
    output[0, :, 2] = [100, 100, 32, 32, 0.0, 0.7]
    output[0, :, 3] = [500, 500, 32, 32, 0.3, 0.2]  # Below threshold
    return output


def frame(width: int = 1280, height: int = 640) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def test_nms_suppresses_overlaps():
    """Test the lower-scored overlapping box is removed."""
    boxes = np.array([[0, 0, 10, 10], [1, 1, 10, 10], [50, 50, 10, 10]], dtype=float)
    scores = np.array([0.6, 0.9, 0.5])

    assert non_max_suppression(boxes, scores, 0.4) == [1, 2]


def test_nms_idempotent():
    """Test running NMS on its own output keeps everything."""
    rng = np.random.default_rng(3)
    boxes = np.column_stack([
        rng.uniform(0, 200, 40),
        rng.uniform(0, 200, 40),
        rng.uniform(10, 60, 40),
        rng.uniform(10, 60, 40),
    ])
    scores = rng.uniform(0, 1, 40)

    keep = non_max_suppression(boxes, scores, 0.4)
    again = non_max_suppression(boxes[keep], scores[keep], 0.4)

    assert again == list(range(len(keep)))


def test_nms_empty():
    assert non_max_suppression(np.zeros((0, 4)), np.zeros(0), 0.4) == []


def test_detect_all_maps_to_frame_space():
    """Test decoding, NMS and scaling from model input to frame pixels."""
    session = FakeSession(make_output())
    detector = RegionProposalDetector(session)

    observations = detector.detect_all(frame(), 1.0)

    assert len(observations) == 2
    best = observations[0]
    assert best.method == DetectionMethod.ML_MODEL
    assert best.confidence == pytest.approx(0.9)
    assert best.screen_point == pytest.approx((640.0, 320.0))
    assert best.bounding_box.width == pytest.approx(128.0)
    assert best.bounding_box.height == pytest.approx(64.0)

    # Input tensor layout
    tensor = session.calls[0]["images"]
    assert tensor.shape == (1, 3, 640, 640)
    assert tensor.dtype == np.float32


def test_transposed_output_layout():
    """Test [1, A, 4 + C] outputs decode the same way."""
    output = np.transpose(make_output(), (0, 2, 1))
    detector = RegionProposalDetector(FakeSession(output))

    observations = detector.detect_all(frame(), 0.0)

    assert len(observations) == 2
    assert observations[0].screen_point == pytest.approx((640.0, 320.0))


def test_target_class_filter():
    """Test restricting detections to specific classes."""
    config = RegionProposalConfig(target_class_ids=[1])
    detector = RegionProposalDetector(FakeSession(make_output()), config)

    observations = detector.detect_all(frame(), 0.0)

    assert len(observations) == 1
    assert observations[0].screen_point == pytest.approx((200.0, 100.0))


def test_process_frame_returns_best():
    """Test frame loop entry point returns the highest-confidence box."""
    detector = RegionProposalDetector(FakeSession(make_output()))
    obs = detector.process_frame(frame(), 2.0)
    detector.close()

    assert obs is not None
    assert obs.confidence == pytest.approx(0.9)
    assert obs.timestamp == 2.0
    assert detector.get_stats()["detections"] == 1


def test_no_confident_anchor():
    """Test empty result when every score is below threshold."""
    output = np.zeros((1, 6, 50), dtype=np.float32)
    detector = RegionProposalDetector(FakeSession(output))

    assert detector.process_frame(frame(), 0.0) is None
    detector.close()


def test_inference_timeout_skips_frames():
    """Test a slow model yields no detection and blocks new submissions until done."""
    session = BlockingSession(make_output())
    config = RegionProposalConfig(inference_timeout_sec=0.05)
    detector = RegionProposalDetector(session, config)

    assert detector.process_frame(frame(), 0.0) is None
    assert detector.timeouts == 1

    assert detector.process_frame(frame(), 0.1) is None
    assert detector.get_stats()["rejections"]["inference_busy"] == 1

    session.release.set()
    detector._pending.result(timeout=5.0)
    detector.config.inference_timeout_sec = 5.0

    obs = detector.process_frame(frame(), 0.2)
    assert obs is not None
    assert obs.timestamp == 0.2
    detector.close()


def test_inference_error_is_contained():
    """Test a failing model produces no detection."""
    detector = RegionProposalDetector(FailingSession(make_output()))

    assert detector.process_frame(frame(), 0.0) is None
    assert detector.errors == 1
    detector.close()


def test_create_detector_requires_session_or_model():
    """Test factory validation for the ML variant."""
    with pytest.raises(ValueError):
        create_detector(DetectorKind.REGION_PROPOSAL)

    detector = create_detector("region_proposal", session=FakeSession(make_output()))
    assert isinstance(detector, RegionProposalDetector)


def test_create_detector_unknown_kind():
    with pytest.raises(ValueError):
        create_detector("optical_flow")
