import textwrap
from pathlib import Path

import pytest

from shuttletrack.detection import ColorThresholdConfig, FrameDeltaDetector, RegionProposalConfig
from shuttletrack.pipeline import (
    PipelineConfig,
    TrackingPipeline,
    build_pipeline_config,
    load_pipeline_config,
    load_pipeline_settings,
)

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default_config.yaml"


def test_load_pipeline_config_missing_file(tmp_path: Path):
    """Missing YAML should fall back to defaults without error."""
    loaded = load_pipeline_config(tmp_path / "no_config.yaml")
    default_config = PipelineConfig()

    assert isinstance(loaded, PipelineConfig)
    assert loaded.frame_skip == default_config.frame_skip
    assert loaded.tracking.max_velocity == default_config.tracking.max_velocity


def test_build_pipeline_config_applies_overrides(tmp_path: Path):
    """Overrides from YAML should populate every component config."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(textwrap.dedent("""
        pipeline:
          detector_kind: color_threshold
          frame_skip: 3
        preprocess:
          downscale_factor: 0.5
        color_threshold:
          hue_tolerance_deg: 10.0
        depth:
          default_depth: 4.0
        tracking:
          max_velocity: 40.0
          kalman:
            measurement_noise: 0.5
        collision:
          cooldown_sec: 0.8
          fallback_side: B
    """).strip())

    config = build_pipeline_config(load_pipeline_settings(config_path))

    assert config.detector_kind == "color_threshold"
    assert config.frame_skip == 3
    assert config.preprocess.downscale_factor == 0.5
    assert config.color_threshold.hue_tolerance_deg == 10.0
    assert config.depth.default_depth == 4.0
    assert config.tracking.max_velocity == 40.0
    assert config.tracking.kalman.measurement_noise == 0.5
    assert config.collision.cooldown_sec == 0.8
    assert config.collision.fallback_side == "B"
    assert isinstance(config.detector_config(), ColorThresholdConfig)


def test_kalman_section_at_top_level():
    config = build_pipeline_config({"kalman": {"process_noise": 0.01}})
    assert config.tracking.kalman.process_noise == 0.01


def test_unknown_keys_ignored():
    config = build_pipeline_config({"tracking": {"no_such_option": 1}, "unknown_section": {"x": 1}})
    assert not hasattr(config.tracking, "no_such_option")


def test_invalid_detector_kind_rejected():
    with pytest.raises(ValueError):
        build_pipeline_config({"pipeline": {"detector_kind": "optical_flow"}})


def test_malformed_yaml_falls_back(tmp_path: Path):
    config_path = tmp_path / "broken.yaml"
    config_path.write_text("pipeline: [unclosed")

    assert load_pipeline_settings(config_path) == {}


def test_repository_default_config_matches_defaults():
    """The shipped YAML should mirror the dataclass defaults."""
    config = load_pipeline_config(REPO_CONFIG)
    defaults = PipelineConfig()

    assert config.detector_kind == defaults.detector_kind
    assert config.frame_skip == defaults.frame_skip
    assert config.collision.plane_epsilon == pytest.approx(defaults.collision.plane_epsilon)
    assert config.collision.fallback_side == "A"
    assert config.region_proposal.model_path is None
    assert isinstance(config.region_proposal, RegionProposalConfig)
    assert config.tracking.kalman.measurement_noise == defaults.tracking.kalman.measurement_noise


def test_pipeline_built_from_config():
    pipeline = TrackingPipeline(load_pipeline_config(REPO_CONFIG))
    assert isinstance(pipeline.detector, FrameDeltaDetector)
