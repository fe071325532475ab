"""
Pipeline module - frame loop, configuration and event handoff.
"""
from .config_loader import (
    DEFAULT_CONFIG_PATH,
    PipelineConfig,
    build_pipeline_config,
    load_pipeline_config,
    load_pipeline_settings,
)
from .handoff import LatestSlot
from .pipeline import TrackingPipeline

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "PipelineConfig",
    "build_pipeline_config",
    "load_pipeline_config",
    "load_pipeline_settings",
    "LatestSlot",
    "TrackingPipeline",
]
