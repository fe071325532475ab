"""
ML region-proposal detection via an ONNX model (YOLOv8-style output).

The model output is [1, 4 + C, A] (or its transpose): per anchor a box
(cx, cy, w, h) in model input pixels followed by C class scores. Anchors are
filtered by score, mapped back to frame pixels and de-duplicated with greedy
non-maximum suppression.

Inference runs on a single worker thread with a bounded wait so a slow
model cannot stall the frame loop.
"""
from concurrent.futures import ThreadPoolExecutor, Future, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

import cv2
import numpy as np

from shuttletrack.core import BoundingBox, DetectionMethod, Observation
from .base import DetectorBase

logger = logging.getLogger(__name__)


@dataclass
class RegionProposalConfig:
    """Configuration for ML detection."""
    model_path: Optional[str] = None
    confidence_threshold: float = 0.5
    iou_threshold: float = 0.4
    input_size: int = 640
    target_class_ids: Optional[List[int]] = None  # None: any class
    inference_timeout_sec: float = 0.5
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])


def non_max_suppression(boxes: np.ndarray, scores: np.ndarray, iou_threshold: float) -> List[int]:
    """
    Greedy NMS.

    Args:
        boxes: (N, 4) array of x, y, width, height
        scores: (N,) confidences
        iou_threshold: Boxes overlapping a kept box by more than this are dropped

    Returns:
        Indices of kept boxes, highest score first
    """
    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if len(boxes) == 0:
        return []

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = x1 + boxes[:, 2]
    y2 = y1 + boxes[:, 3]
    areas = boxes[:, 2] * boxes[:, 3]

    order = np.argsort(-scores, kind="stable")
    keep = []
    while order.size > 0:
        i = int(order[0])
        keep.append(i)
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])
        inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
        union = areas[i] + areas[rest] - inter
        iou = np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)

        order = rest[iou <= iou_threshold]

    return keep


class RegionProposalDetector(DetectorBase):
    """
    Runs an object detection model and reports the best shuttle box.

    `session` must behave like onnxruntime.InferenceSession: `get_inputs()`
    returning objects with `.name`, and `run(None, feeds)` returning a list
    of output arrays.
    """

    def __init__(self, session, config: Optional[RegionProposalConfig] = None):
        super().__init__()
        self.config = config or RegionProposalConfig()
        self.session = session
        self.input_name = session.get_inputs()[0].name

        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None
        self.timeouts = 0
        self.errors = 0

        logger.info(
            f"RegionProposalDetector initialized: input={self.config.input_size}, "
            f"conf>{self.config.confidence_threshold}, nms_iou={self.config.iou_threshold}, "
            f"timeout={self.config.inference_timeout_sec}s"
        )

    @classmethod
    def from_model_path(cls, model_path, config: Optional[RegionProposalConfig] = None) -> "RegionProposalDetector":
        """Load an ONNX model with onnxruntime."""
        import onnxruntime as ort

        config = config or RegionProposalConfig()
        session = ort.InferenceSession(str(model_path), providers=list(config.providers))
        logger.info(f"Loaded ONNX model from {model_path}")
        return cls(session, config)

    # ------------------------------------------------------------------ model I/O

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """BGR frame → [1, 3, S, S] float32 RGB tensor in [0, 1]."""
        size = self.config.input_size
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        resized = cv2.resize(image, (size, size))
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
        tensor = rgb.astype(np.float32) / 255.0
        return np.expand_dims(tensor.transpose(2, 0, 1), axis=0)

    def decode(self, output: np.ndarray, frame_width: int, frame_height: int):
        """
        Turn raw model output into frame-space boxes.

        Returns:
            (boxes (N, 4) x/y/w/h, scores (N,)) above the confidence threshold
        """
        preds = np.asarray(output, dtype=np.float32)
        if preds.ndim == 3:
            preds = preds[0]
        # Expect (4 + C, A) with many more anchors than channels
        if preds.shape[0] < preds.shape[1]:
            preds = preds.T

        class_scores = preds[:, 4:]
        if self.config.target_class_ids is not None:
            class_scores = class_scores[:, list(self.config.target_class_ids)]
        if class_scores.shape[1] == 0:
            return np.zeros((0, 4)), np.zeros(0)

        scores = class_scores.max(axis=1)
        keep = scores > self.config.confidence_threshold
        if not np.any(keep):
            return np.zeros((0, 4)), np.zeros(0)

        cx, cy, w, h = preds[keep, 0], preds[keep, 1], preds[keep, 2], preds[keep, 3]
        sx = frame_width / self.config.input_size
        sy = frame_height / self.config.input_size

        boxes = np.stack([(cx - w / 2) * sx, (cy - h / 2) * sy, w * sx, h * sy], axis=1)
        return boxes, scores[keep]

    def detect_all(self, image: np.ndarray, timestamp: float) -> List[Observation]:
        """Synchronous inference; one observation per box surviving NMS."""
        outputs = self.session.run(None, {self.input_name: self.preprocess(image)})
        boxes, scores = self.decode(outputs[0], image.shape[1], image.shape[0])

        observations = []
        for i in non_max_suppression(boxes, scores, self.config.iou_threshold):
            x, y, w, h = (float(v) for v in boxes[i])
            box = BoundingBox(x, y, max(w, 0.0), max(h, 0.0))
            observations.append(Observation(
                screen_point=box.center,
                confidence=float(np.clip(scores[i], 0.0, 1.0)),
                timestamp=timestamp,
                method=DetectionMethod.ML_MODEL,
                bounding_box=box,
            ))
        return observations

    # ------------------------------------------------------------------ frame loop

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[Observation]:
        """
        Best detection for this frame, waiting at most inference_timeout_sec.

        While a timed-out inference is still running new frames are skipped.
        """
        self.frames_processed += 1

        if self._pending is not None and not self._pending.done():
            self._reject("inference_busy")
            return None
        self._pending = None

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="shuttle-infer")

        future = self._executor.submit(self.detect_all, image, timestamp)
        try:
            observations = future.result(timeout=self.config.inference_timeout_sec)
        except FutureTimeout:
            self._pending = future
            self.timeouts += 1
            logger.warning(
                f"Inference exceeded {self.config.inference_timeout_sec}s, skipping frame"
            )
            return None
        except Exception as e:
            self.errors += 1
            logger.warning(f"Inference failed: {e}")
            return None

        if not observations:
            return None
        return self._accept(observations[0])

    def reset(self) -> None:
        self._pending = None

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._pending = None

    def get_stats(self) -> dict:
        stats = super().get_stats()
        stats.update({"timeouts": self.timeouts, "errors": self.errors})
        return stats
