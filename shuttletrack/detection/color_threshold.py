"""
Single-frame colour threshold detection.

Pixels on a strided grid are converted to HSV and matched against a target
hue with wrap-around at red, plus saturation and value floors. The matches'
bounding box must have a plausible size for a shuttle.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import cv2
import numpy as np

from shuttletrack.core import BoundingBox, DetectionMethod, Observation
from .base import DetectorBase

logger = logging.getLogger(__name__)


def bgr_to_hue(bgr: Tuple[int, int, int]) -> float:
    """Hue of a BGR colour in [0, 1)."""
    pixel = np.array([[bgr]], dtype=np.float32) / 255.0
    hue_deg = float(cv2.cvtColor(pixel, cv2.COLOR_BGR2HSV)[0, 0, 0])
    return (hue_deg / 360.0) % 1.0


@dataclass
class ColorThresholdConfig:
    """Configuration for colour threshold detection."""
    target_hue: float = 0.153  # 0-1, default yellow (55 degrees)
    hue_tolerance_deg: float = 15.0  # ± degrees
    saturation_min: float = 0.4
    value_min: float = 0.4
    min_match_count: int = 10  # Matches on the sampled grid
    min_diameter: float = 30.0  # Equivalent diameter bounds in pixels
    max_diameter: float = 150.0
    sample_step: int = 4

    def __post_init__(self):
        if self.sample_step < 1:
            raise ValueError("sample_step must be >= 1")


class ColorThresholdDetector(DetectorBase):
    """
    Finds a coloured shuttle in a single BGR frame.

    Grayscale buffers carry no hue and never produce an observation.
    """

    def __init__(self, config: Optional[ColorThresholdConfig] = None):
        super().__init__()
        self.config = config or ColorThresholdConfig()

        logger.info(
            f"ColorThresholdDetector initialized: hue={self.config.target_hue:.3f}"
            f"±{self.config.hue_tolerance_deg}°, S>={self.config.saturation_min}, "
            f"V>={self.config.value_min}, diameter=[{self.config.min_diameter}, "
            f"{self.config.max_diameter}]px"
        )

    def set_target_color(self, bgr: Tuple[int, int, int]) -> None:
        """Track a new colour given as a BGR triple."""
        self.config.target_hue = bgr_to_hue(bgr)
        logger.info(f"Target hue set to {self.config.target_hue:.3f}")

    def set_detection_parameters(
        self,
        hue_tolerance_deg: Optional[float] = None,
        saturation_min: Optional[float] = None,
        value_min: Optional[float] = None,
    ) -> None:
        """Adjust matching thresholds at runtime."""
        if hue_tolerance_deg is not None:
            self.config.hue_tolerance_deg = hue_tolerance_deg
        if saturation_min is not None:
            self.config.saturation_min = saturation_min
        if value_min is not None:
            self.config.value_min = value_min

    def match_mask(self, image: np.ndarray) -> np.ndarray:
        """Boolean mask of matching pixels on the sampled grid."""
        step = self.config.sample_step
        sampled = image[::step, ::step].astype(np.float32) / 255.0
        hsv = cv2.cvtColor(sampled, cv2.COLOR_BGR2HSV)

        hue = hsv[..., 0] / 360.0
        hue_diff = np.abs(hue - self.config.target_hue)
        hue_diff = np.where(hue_diff > 0.5, 1.0 - hue_diff, hue_diff)

        return (
            (hue_diff <= self.config.hue_tolerance_deg / 360.0)
            & (hsv[..., 1] >= self.config.saturation_min)
            & (hsv[..., 2] >= self.config.value_min)
        )

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[Observation]:
        self.frames_processed += 1

        if image.ndim != 3 or image.shape[2] != 3:
            self._reject("not_color")
            return None

        mask = self.match_mask(image)
        count = int(np.count_nonzero(mask))
        if count < self.config.min_match_count:
            if count:
                self._reject("too_few_matches")
            return None

        step = self.config.sample_step
        ys, xs = np.nonzero(mask)
        xs = xs * step
        ys = ys * step

        box = BoundingBox(
            x=float(xs.min()),
            y=float(ys.min()),
            width=float(xs.max() - xs.min() + step),
            height=float(ys.max() - ys.min() + step),
        )

        diameter = box.equivalent_diameter
        if not self.config.min_diameter <= diameter <= self.config.max_diameter:
            self._reject("implausible_size")
            logger.debug("Rejecting colour blob with diameter %.1fpx", diameter)
            return None

        confidence = float(np.clip(1.0 - abs(1.0 - box.aspect_ratio), 0.0, 1.0))

        return self._accept(Observation(
            screen_point=(float(xs.mean()), float(ys.mean())),
            confidence=confidence,
            timestamp=timestamp,
            method=DetectionMethod.COLOR_THRESHOLD,
            bounding_box=box,
        ))
