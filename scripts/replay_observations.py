"""
Replay recorded 3D shuttle observations against a virtual net.

Input YAML:
    net:
      origin: [0.0, 0.0, 0.0]
      normal: [1.0, 0.0, 0.0]
      width: 5.18
      height: 1.55
      up_axis: [0.0, 1.0, 0.0]
    observations:
      - {t: 0.0, position: [2.0, 0.0, 0.0], confidence: 1.0}
      - {t: 0.1, position: [1.0, 0.0, 0.0]}

Usage:
    python scripts/replay_observations.py data/rally.yaml
    python scripts/replay_observations.py data/rally.yaml --config config/default_config.yaml
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shuttletrack.core import DetectionMethod, Observation, PlaneRegion, load_yaml
from shuttletrack.pipeline import TrackingPipeline, load_pipeline_config
import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Replay 3D observations through tracking and net collision",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("recording", type=str, help="YAML file with net and observations")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Pipeline config YAML (default: config/default_config.yaml)",
    )
    return parser.parse_args()


def build_plane(net: dict) -> PlaneRegion:
    defaults = PlaneRegion()
    return PlaneRegion(
        origin=tuple(net.get("origin", defaults.origin)),
        normal=tuple(net.get("normal", defaults.normal)),
        width=float(net.get("width", defaults.width)),
        height=float(net.get("height", defaults.height)),
        up_axis=tuple(net.get("up_axis", defaults.up_axis)),
        half_thickness=float(net.get("half_thickness", defaults.half_thickness)),
    )


def main():
    """Run replay."""
    args = parse_args()

    try:
        recording = load_yaml(Path(args.recording))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load recording: {e}")
        return 1

    config = load_pipeline_config(args.config)
    pipeline = TrackingPipeline(config)
    if not pipeline.set_plane(build_plane(recording.get("net") or {})):
        logger.error("Invalid net definition")
        return 1

    events = []
    pipeline.on_collision(events.append)
    pipeline.on_track_reset(lambda reason, t: logger.info(f"Track reset: {reason.value} @ {t:.3f}s"))

    for sample in recording.get("observations") or []:
        observation = Observation(
            screen_point=(0.0, 0.0),
            confidence=float(sample.get("confidence", 1.0)),
            timestamp=float(sample["t"]),
            method=DetectionMethod(sample.get("method", DetectionMethod.FRAME_DELTA.value)),
        ).with_world_point(sample["position"], estimated=False)
        pipeline.process_observation(observation)

    print(f"{len(events)} collision(s)")
    for event in events:
        print(
            f"  t={event.timestamp_millis}ms side={event.side.value} "
            f"speed={event.impact_speed:.2f}m/s point={event.contact_point.round(3).tolist()}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
