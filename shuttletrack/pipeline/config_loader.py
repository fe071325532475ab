"""
Pipeline configuration and YAML loading.

Tuning lives in `config/default_config.yaml`; each top-level section
overrides one component's dataclass. Unknown keys are ignored so older
code keeps working with newer files.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from shuttletrack.core import load_yaml
from shuttletrack.collision import CollisionConfig
from shuttletrack.detection import (
    ColorThresholdConfig,
    DetectorKind,
    FrameDeltaConfig,
    PreprocessConfig,
    RegionProposalConfig,
)
from shuttletrack.geometry import DepthConfig
from shuttletrack.tracking import KalmanConfig, TrackerConfig

logger = logging.getLogger(__name__)

# Default location for the application-wide settings
DEFAULT_CONFIG_PATH = Path("config/default_config.yaml")


@dataclass
class PipelineConfig:
    """Aggregated configuration for TrackingPipeline."""
    detector_kind: str = DetectorKind.FRAME_DELTA.value
    frame_skip: int = 2  # Process every Nth frame

    # Performance instrumentation
    enable_performance_monitoring: bool = True
    timing_log_interval_frames: int = 300

    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    frame_delta: FrameDeltaConfig = field(default_factory=FrameDeltaConfig)
    color_threshold: ColorThresholdConfig = field(default_factory=ColorThresholdConfig)
    region_proposal: RegionProposalConfig = field(default_factory=RegionProposalConfig)
    depth: DepthConfig = field(default_factory=DepthConfig)
    tracking: TrackerConfig = field(default_factory=TrackerConfig)
    collision: CollisionConfig = field(default_factory=CollisionConfig)

    def __post_init__(self):
        if self.frame_skip < 1:
            raise ValueError("frame_skip must be >= 1")
        DetectorKind(self.detector_kind)

    def detector_config(self):
        """Config dataclass matching detector_kind."""
        kind = DetectorKind(self.detector_kind)
        if kind == DetectorKind.FRAME_DELTA:
            return self.frame_delta
        if kind == DetectorKind.COLOR_THRESHOLD:
            return self.color_threshold
        return self.region_proposal


def _apply_overrides(target: Any, overrides: Dict[str, Any]) -> None:
    """
    Apply dictionary overrides to a dataclass-like object.

    Unknown keys are ignored to remain forward compatible with new YAML fields.
    """
    for key, value in overrides.items():
        if hasattr(target, key):
            setattr(target, key, value)
        else:
            logger.debug("Ignoring unknown config key: %s", key)


def load_pipeline_settings(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load raw configuration dictionary from YAML.

    Args:
        config_path: Optional path to YAML file (defaults to DEFAULT_CONFIG_PATH)

    Returns:
        Dictionary with configuration values (empty dict on failure)
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.info("Pipeline config not found at %s, using defaults", path)
        return {}

    try:
        return load_yaml(path) or {}
    except Exception as exc:  # YAML/IO errors fall back to safe defaults
        logger.warning("Failed to load pipeline config from %s: %s", path, exc)
        return {}


def build_pipeline_config(settings: Optional[Dict[str, Any]] = None) -> PipelineConfig:
    """
    Construct PipelineConfig (including component configs) from settings.

    Args:
        settings: Raw settings dictionary (e.g., from load_pipeline_settings)

    Returns:
        Populated PipelineConfig instance

    Raises:
        ValueError: Invalid detector kind or frame_skip after overrides
    """
    settings = settings or {}

    kalman = KalmanConfig()
    tracking = TrackerConfig(kalman=kalman)
    config = PipelineConfig(tracking=tracking)

    _apply_overrides(config, settings.get("pipeline") or {})
    _apply_overrides(config.preprocess, settings.get("preprocess") or {})
    _apply_overrides(config.frame_delta, settings.get("frame_delta") or {})
    _apply_overrides(config.color_threshold, settings.get("color_threshold") or {})
    _apply_overrides(config.region_proposal, settings.get("region_proposal") or {})
    _apply_overrides(config.depth, settings.get("depth") or {})
    # Filter noise may be nested under tracking or given as its own section
    tracking_overrides = dict(settings.get("tracking") or {})
    kalman_overrides = dict(tracking_overrides.pop("kalman", None) or {})
    kalman_overrides.update(settings.get("kalman") or {})
    _apply_overrides(tracking, tracking_overrides)
    _apply_overrides(kalman, kalman_overrides)
    _apply_overrides(config.collision, settings.get("collision") or {})

    # setattr skips __post_init__; re-run the checks that matter
    config.__post_init__()

    return config


def load_pipeline_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Convenience wrapper to load and build a pipeline config in one call.
    """
    settings = load_pipeline_settings(config_path)
    return build_pipeline_config(settings)
