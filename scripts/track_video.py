"""
Run the tracking pipeline on a video file or camera and draw detections.

The camera is assumed static at the world origin looking down +Z; the net is
placed perpendicular to the view axis at --net-distance metres.

Usage:
    python scripts/track_video.py -v videos/rally.mp4
    python scripts/track_video.py -c 0 --detector color_threshold
"""
import cv2
import sys
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shuttletrack.core import CollisionEvent, PlaneRegion
from shuttletrack.detection import DetectorKind
from shuttletrack.geometry import CameraPose
from shuttletrack.pipeline import TrackingPipeline, load_pipeline_config
import logging

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Shuttle tracking on video")
    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument("-v", "--video", type=str, help="Video file")
    source_group.add_argument("-c", "--camera", type=int, help="Camera index")
    parser.add_argument("--config", type=str, default=None, help="Pipeline config YAML")
    parser.add_argument(
        "--detector",
        choices=[kind.value for kind in DetectorKind],
        default=None,
        help="Override detector kind from config",
    )
    parser.add_argument("--fov", type=float, default=60.0, help="Horizontal field of view (deg)")
    parser.add_argument("--net-distance", type=float, default=3.0, help="Net distance (m)")
    return parser.parse_args()


def main():
    """Run tracking loop."""
    args = parse_args()

    config = load_pipeline_config(args.config)
    if args.detector:
        config.detector_kind = args.detector

    source = args.video if args.video else (args.camera if args.camera is not None else 0)
    capture = cv2.VideoCapture(source)
    if not capture.isOpened():
        logger.error(f"Failed to open source: {source}")
        return 1

    pipeline = TrackingPipeline(config)
    last_event = {"event": None}

    def remember(event: CollisionEvent) -> None:
        last_event["event"] = event

    pipeline.on_collision(remember)

    fps = capture.get(cv2.CAP_PROP_FPS) or 30.0
    frame_index = 0
    try:
        while True:
            ok, image = capture.read()
            if not ok:
                break

            if pipeline.camera is None:
                height, width = image.shape[:2]
                pipeline.set_camera(CameraPose.from_fov(width, height, args.fov))
                pipeline.set_plane(PlaneRegion(
                    origin=(0.0, 0.0, args.net_distance),
                    normal=(0.0, 0.0, -1.0),
                    up_axis=(0.0, -1.0, 0.0),
                ))

            observation = pipeline.process_frame(image, frame_index / fps)
            frame_index += 1

            if observation is not None and observation.bounding_box is not None:
                box = observation.bounding_box
                cv2.rectangle(
                    image,
                    (int(box.x), int(box.y)),
                    (int(box.x + box.width), int(box.y + box.height)),
                    (0, 255, 0),
                    2,
                )

            event = last_event["event"]
            if event is not None:
                cv2.putText(
                    image,
                    f"NET {event.side.value} {event.impact_speed:.1f} m/s",
                    (20, 40),
                    cv2.FONT_HERSHEY_SIMPLEX,
                    1.0,
                    (0, 0, 255),
                    2,
                )

            cv2.imshow("shuttletrack", image)
            if cv2.waitKey(1) & 0xFF == ord('q'):
                break
    finally:
        capture.release()
        pipeline.close()
        cv2.destroyAllWindows()

    logger.info(f"Stats: {pipeline.get_stats()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
