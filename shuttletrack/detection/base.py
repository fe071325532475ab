"""
Shared detector functionality and detector selection.
"""
from enum import Enum
from typing import Dict, Optional
import logging

import numpy as np

from shuttletrack.core import Observation

logger = logging.getLogger(__name__)


class DetectorKind(Enum):
    """Detector variant chosen at pipeline construction."""
    FRAME_DELTA = "frame_delta"
    COLOR_THRESHOLD = "color_threshold"
    REGION_PROPOSAL = "region_proposal"


class DetectorBase:
    """
    Base class for shuttle detectors.

    Subclasses implement `process_frame(image, timestamp)` and return at most
    one Observation, in the pixel coordinates of the buffer they were given.
    """

    def __init__(self):
        self.frames_processed = 0
        self.detections = 0
        self.rejections: Dict[str, int] = {}

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[Observation]:
        raise NotImplementedError

    def _reject(self, reason: str) -> None:
        self.rejections[reason] = self.rejections.get(reason, 0) + 1

    def _accept(self, observation: Observation) -> Observation:
        self.detections += 1
        return observation

    def reset(self) -> None:
        """Clear per-stream state (baselines, pending work)."""

    def close(self) -> None:
        """Release resources held by the detector."""

    def get_stats(self) -> dict:
        return {
            "frames_processed": self.frames_processed,
            "detections": self.detections,
            "rejections": dict(self.rejections),
        }


def create_detector(kind, config=None, session=None) -> DetectorBase:
    """
    Build a detector variant.

    Args:
        kind: DetectorKind or its string value
        config: Matching config dataclass (defaults when None)
        session: Inference session for REGION_PROPOSAL (loaded from
            config.model_path when omitted)

    Raises:
        ValueError: Unknown kind, or REGION_PROPOSAL without a session or model path
    """
    kind = DetectorKind(kind)

    if kind == DetectorKind.FRAME_DELTA:
        from .frame_delta import FrameDeltaDetector
        return FrameDeltaDetector(config)

    if kind == DetectorKind.COLOR_THRESHOLD:
        from .color_threshold import ColorThresholdDetector
        return ColorThresholdDetector(config)

    from .region_proposal import RegionProposalConfig, RegionProposalDetector
    config = config or RegionProposalConfig()
    if session is not None:
        return RegionProposalDetector(session, config)
    if not config.model_path:
        raise ValueError("Region proposal detector needs a session or model_path")
    return RegionProposalDetector.from_model_path(config.model_path, config)
