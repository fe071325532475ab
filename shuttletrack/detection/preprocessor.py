"""
Frame downsampling ahead of detection.
Detectors run on a reduced buffer; results are mapped back to full resolution.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import cv2
import numpy as np

from shuttletrack.core import Frame

logger = logging.getLogger(__name__)


@dataclass
class PreprocessConfig:
    """Configuration for frame preprocessing."""
    downscale_factor: float = 0.25  # Output size as a fraction of input (1.0 disables)
    min_width: int = 64  # Never shrink below this width
    convert_grayscale: bool = False  # Only useful for frame-delta detection

    def __post_init__(self):
        if not 0.0 < self.downscale_factor <= 1.0:
            raise ValueError("downscale_factor must be in (0, 1]")


class FramePreprocessor:
    """
    Downscales frames and reports the factors that map results back.

    Example:
        preprocessor = FramePreprocessor(PreprocessConfig(downscale_factor=0.25))
        small, (sx, sy) = preprocessor.process(frame)
        observation = detector.process_frame(small.image, small.timestamp)
        observation = observation.scaled(sx, sy)
    """

    def __init__(self, config: Optional[PreprocessConfig] = None):
        self.config = config or PreprocessConfig()

    def process(self, frame: Frame) -> Tuple[Frame, Tuple[float, float]]:
        """
        Process a frame.

        Returns:
            (processed Frame, (scale_x, scale_y)) where the scales multiply
            processed-buffer coordinates to get full-resolution coordinates
        """
        image = frame.image
        height, width = image.shape[:2]

        image = self._downscale(image)
        if self.config.convert_grayscale and image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)

        new_height, new_width = image.shape[:2]
        scale = (width / new_width, height / new_height)

        return Frame(image=image, timestamp=frame.timestamp, frame_id=frame.frame_id), scale

    def _downscale(self, image: np.ndarray) -> np.ndarray:
        height, width = image.shape[:2]
        factor = self.config.downscale_factor
        if factor >= 1.0:
            return image

        new_width = max(self.config.min_width, int(round(width * factor)))
        if new_width >= width:
            return image
        new_height = max(1, int(round(height * new_width / width)))

        # INTER_AREA averages source pixels when shrinking
        return cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)

    def update_config(self, **kwargs) -> None:
        for key, value in kwargs.items():
            if hasattr(self.config, key):
                setattr(self.config, key, value)
                logger.debug(f"Config updated: {key} = {value}")
            else:
                logger.warning(f"Unknown config parameter: {key}")
