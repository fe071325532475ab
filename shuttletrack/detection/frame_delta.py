"""
Frame-to-frame difference detection.

Compares each buffer with the previous one on a strided grid and reports the
centroid of changed pixels. Whole-frame change (camera motion, exposure jumps)
and tiny flicker are rejected by coverage and count limits.
"""
import math
from dataclasses import dataclass
from typing import Optional
import logging

import cv2
import numpy as np

from shuttletrack.core import BoundingBox, DetectionMethod, Observation
from .base import DetectorBase

logger = logging.getLogger(__name__)


@dataclass
class FrameDeltaConfig:
    """
    Configuration for frame-delta detection.

    Pixel counts are in buffer pixels; they are divided by sample_step^2 for
    the strided scan.
    """
    motion_threshold: float = 0.25  # Fraction of max summed channel difference
    min_changed_pixels: int = 300  # Below: sensor noise
    max_changed_pixels: int = 20000  # Above: camera shake
    max_motion_coverage: float = 0.35  # Above this fraction of the frame: global motion
    sample_step: int = 2

    # Reported box around the centroid
    box_scale: float = 1.5
    min_box_radius: float = 20.0
    max_box_fraction: float = 0.2  # Of frame width

    confidence_full_count: int = 4000  # Changed pixels for confidence 1.0

    def __post_init__(self):
        if self.sample_step < 1:
            raise ValueError("sample_step must be >= 1")


class FrameDeltaDetector(DetectorBase):
    """
    Detects a moving shuttle from consecutive frames.

    The first frame (or a frame whose shape differs from the baseline) only
    stores the baseline. Every processed frame replaces the baseline.
    """

    def __init__(self, config: Optional[FrameDeltaConfig] = None):
        super().__init__()
        self.config = config or FrameDeltaConfig()
        self._baseline: Optional[np.ndarray] = None

        logger.info(
            f"FrameDeltaDetector initialized: threshold={self.config.motion_threshold}, "
            f"pixels=[{self.config.min_changed_pixels}, {self.config.max_changed_pixels}], "
            f"max_coverage={self.config.max_motion_coverage}, step={self.config.sample_step}"
        )

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[Observation]:
        """
        Compare `image` with the previous buffer.

        Args:
            image: BGR or grayscale buffer
            timestamp: Stream timestamp in seconds

        Returns:
            Observation at the motion centroid, or None
        """
        self.frames_processed += 1

        baseline = self._baseline
        self._baseline = image.copy()

        if baseline is None or baseline.shape != image.shape:
            return None

        step = self.config.sample_step
        diff = cv2.absdiff(image, baseline)
        channels = diff.shape[2] if diff.ndim == 3 else 1
        if diff.ndim == 3:
            summed = diff.sum(axis=2, dtype=np.int32)
        else:
            summed = diff.astype(np.int32)

        sampled = summed[::step, ::step]
        mask = sampled > self.config.motion_threshold * 255 * channels
        count = int(np.count_nonzero(mask))

        if count == 0:
            return None

        coverage = count / mask.size
        if coverage > self.config.max_motion_coverage:
            self._reject("global_motion")
            logger.debug("Rejecting global motion (coverage=%.2f)", coverage)
            return None

        area_scale = step * step
        if count < self.config.min_changed_pixels / area_scale:
            self._reject("too_few_pixels")
            return None
        if count > self.config.max_changed_pixels / area_scale:
            self._reject("too_many_pixels")
            logger.debug("Rejecting large change (%d sampled pixels)", count)
            return None

        ys, xs = np.nonzero(mask)
        cx = float(xs.mean()) * step
        cy = float(ys.mean()) * step

        width = image.shape[1]
        radius = math.sqrt(count) * step * self.config.box_scale
        radius = min(max(radius, self.config.min_box_radius), self.config.max_box_fraction * width)

        confidence = min(1.0, count * area_scale / self.config.confidence_full_count)

        return self._accept(Observation(
            screen_point=(cx, cy),
            confidence=confidence,
            timestamp=timestamp,
            method=DetectionMethod.FRAME_DELTA,
            bounding_box=BoundingBox.from_center(cx, cy, 2 * radius, 2 * radius),
        ))

    def reset(self) -> None:
        """Drop the baseline; the next frame starts fresh."""
        self._baseline = None
