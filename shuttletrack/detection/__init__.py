"""
Detection module - locating the shuttle in camera frames.
"""
from .base import DetectorBase, DetectorKind, create_detector
from .frame_delta import FrameDeltaConfig, FrameDeltaDetector
from .color_threshold import ColorThresholdConfig, ColorThresholdDetector, bgr_to_hue
from .region_proposal import (
    RegionProposalConfig,
    RegionProposalDetector,
    non_max_suppression,
)
from .preprocessor import FramePreprocessor, PreprocessConfig

__all__ = [
    "DetectorBase",
    "DetectorKind",
    "create_detector",
    "FrameDeltaConfig",
    "FrameDeltaDetector",
    "ColorThresholdConfig",
    "ColorThresholdDetector",
    "bgr_to_hue",
    "RegionProposalConfig",
    "RegionProposalDetector",
    "non_max_suppression",
    "FramePreprocessor",
    "PreprocessConfig",
]
