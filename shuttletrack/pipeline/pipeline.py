"""
Frame-synchronous tracking pipeline.

Flow per processed frame:
1. Downsample the buffer
2. Detect the shuttle (one observation at most)
3. Resolve the screen point to a world point
4. Filter the world point into the active track
5. Test the track segment against the net, emit collision events

All stages run on the caller's thread; only ML inference is offloaded by
its detector. Expected failures (nothing detected, no camera, no plane,
degenerate geometry) return None rather than raising.
"""
from contextlib import nullcontext
from typing import Callable, List, Optional, Sequence
import logging

import numpy as np

from shuttletrack.core import (
    CollisionEvent,
    Frame,
    Observation,
    PerformanceMonitor,
    PlaneRegion,
    TrackResetReason,
)
from shuttletrack.collision import PlaneCollisionDetector
from shuttletrack.detection import DetectorBase, FramePreprocessor, create_detector
from shuttletrack.geometry import CameraPose, DepthEstimator, SurfacePlane
from shuttletrack.tracking import TrajectoryTracker
from .config_loader import PipelineConfig
from .handoff import LatestSlot

logger = logging.getLogger(__name__)

CollisionCallback = Callable[[CollisionEvent], None]
TrackResetCallback = Callable[[TrackResetReason, float], None]


class TrackingPipeline:
    """
    Shuttle detection → tracking → net collision.

    Collaborators can be injected; anything omitted is built from config.

    Example:
        pipeline = TrackingPipeline(load_pipeline_config())
        pipeline.set_camera(CameraPose.from_fov(1280, 720))
        pipeline.set_plane(PlaneRegion(origin=(0, 0.8, 4), normal=(0, 0, -1)))
        pipeline.on_collision(lambda event: print(event.side))

        for image, timestamp in frames:
            pipeline.process_frame(image, timestamp)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        detector: Optional[DetectorBase] = None,
        depth_estimator: Optional[DepthEstimator] = None,
        tracker: Optional[TrajectoryTracker] = None,
        collision_detector: Optional[PlaneCollisionDetector] = None,
        preprocessor: Optional[FramePreprocessor] = None,
    ):
        self.config = config or PipelineConfig()

        self.detector = detector or create_detector(
            self.config.detector_kind, self.config.detector_config()
        )
        self.preprocessor = preprocessor or FramePreprocessor(self.config.preprocess)
        self.depth_estimator = depth_estimator or DepthEstimator(self.config.depth)
        self.tracker = tracker or TrajectoryTracker(self.config.tracking)
        self.collision_detector = collision_detector or PlaneCollisionDetector(self.config.collision)

        self.performance_monitor = (
            PerformanceMonitor() if self.config.enable_performance_monitoring else None
        )

        # Inputs owned by the host application
        self.camera: Optional[CameraPose] = None
        self.surfaces: List[SurfacePlane] = []

        self._collision_callbacks: List[CollisionCallback] = []
        self._reset_callbacks: List[TrackResetCallback] = []

        self.frame_slot: LatestSlot[Frame] = LatestSlot("frame slot")
        self.event_slot: LatestSlot[CollisionEvent] = LatestSlot("event slot")

        # Statistics
        self.frame_counter = 0
        self.frames_processed = 0
        self.frames_skipped = 0
        self.frames_without_camera = 0
        self.observations = 0
        self.collisions = 0
        self.callback_errors = 0

        logger.info(
            f"TrackingPipeline initialized: detector={type(self.detector).__name__}, "
            f"frame_skip={self.config.frame_skip}, "
            f"downscale={self.config.preprocess.downscale_factor}"
        )

    # ------------------------------------------------------------------ host inputs

    def set_camera(self, camera: Optional[CameraPose]) -> None:
        """Camera pose for the next frames (None pauses frame processing)."""
        self.camera = camera

    def set_surfaces(self, surfaces: Optional[Sequence[SurfacePlane]]) -> None:
        self.surfaces = list(surfaces or [])

    def set_plane(self, region: PlaneRegion) -> bool:
        return self.collision_detector.set_plane(region)

    def clear_plane(self) -> None:
        self.collision_detector.clear_plane()

    def on_collision(self, callback: CollisionCallback) -> None:
        """Register a consumer; invoked at most once per cooldown window."""
        self._collision_callbacks.append(callback)

    def on_track_reset(self, callback: TrackResetCallback) -> None:
        """Register a consumer for track resets, called with (reason, timestamp)."""
        self._reset_callbacks.append(callback)

    # ------------------------------------------------------------------ frame loop

    def process_frame(self, image: np.ndarray, timestamp: float) -> Optional[Observation]:
        """
        Run one camera frame through the pipeline.

        Args:
            image: Full-resolution BGR (or grayscale) buffer
            timestamp: Stream timestamp in seconds

        Returns:
            The observation used this frame (with world point), or None
        """
        self.frame_counter += 1
        if (self.frame_counter - 1) % self.config.frame_skip != 0:
            self.frames_skipped += 1
            return None

        if self.camera is None:
            self.frames_without_camera += 1
            logger.debug("No camera pose, skipping frame %d", self.frame_counter)
            return None

        self.frames_processed += 1

        with self._measure_stage("preprocess"):
            small, (sx, sy) = self.preprocessor.process(
                Frame(image=image, timestamp=timestamp, frame_id=self.frame_counter)
            )

        with self._measure_stage("detect"):
            observation = self.detector.process_frame(small.image, timestamp)

        if observation is not None:
            observation = self._resolve_depth(observation.scaled(sx, sy))
            self.observations += 1

            event = self.process_observation(observation)
            if event is None and observation.depth_estimated:
                self._check_screen_ray(observation)

        self._maybe_log_timing()
        return observation

    def submit_frame(self, image: np.ndarray, timestamp: float) -> None:
        """Hand a frame over from a capture thread; an unprocessed older frame is dropped."""
        self.frame_slot.put(Frame(image=image, timestamp=timestamp))

    def process_pending(self) -> Optional[Observation]:
        """Process the newest submitted frame, if any."""
        frame = self.frame_slot.take()
        if frame is None:
            return None
        return self.process_frame(frame.image, frame.timestamp)

    def take_event(self) -> Optional[CollisionEvent]:
        """Newest collision event not yet taken (polling alternative to callbacks)."""
        return self.event_slot.take()

    # ------------------------------------------------------------------ stages

    def _resolve_depth(self, observation: Observation) -> Observation:
        with self._measure_stage("depth"):
            box = observation.bounding_box
            pixel_diameter = max(box.width, box.height) if box is not None else None
            estimate = self.depth_estimator.estimate(
                observation.screen_point, self.camera, self.surfaces, pixel_diameter
            )
        return observation.with_world_point(
            estimate.world_point, estimate.is_estimate, estimate.confidence
        )

    def process_observation(self, observation: Observation) -> Optional[CollisionEvent]:
        """
        Feed a 3D observation to the tracker and the collision detector.

        Observations without a world point are ignored.
        """
        if observation.world_point is None:
            return None

        with self._measure_stage("track"):
            update = self.tracker.add_measurement(
                observation.world_point, observation.timestamp, observation.confidence
            )

        if update.new_track:
            self.collision_detector.forget_position()
        if update.reset_reason is not None:
            self._notify_reset(update.reset_reason, observation.timestamp)

        if not update.accepted:
            return None

        with self._measure_stage("collision"):
            event = self.collision_detector.update(
                update.position, observation.timestamp, velocity=self.tracker.impact_velocity()
            )

        if event is not None:
            self._dispatch(event)
        return event

    def _check_screen_ray(self, observation: Observation) -> Optional[CollisionEvent]:
        if not self.collision_detector.config.enable_screen_ray:
            return None
        if observation.confidence < self.tracker.config.min_confidence:
            return None

        origin, direction = self.camera.screen_ray(observation.screen_point)
        event = self.collision_detector.check_screen_ray(origin, direction, observation.timestamp)
        if event is not None:
            self._dispatch(event)
        return event

    def _dispatch(self, event: CollisionEvent) -> None:
        self.collisions += 1
        self.event_slot.put(event)
        for callback in self._collision_callbacks:
            try:
                callback(event)
            except Exception:
                self.callback_errors += 1
                logger.exception("Collision callback failed")

    def _notify_reset(self, reason: TrackResetReason, timestamp: float) -> None:
        for callback in self._reset_callbacks:
            try:
                callback(reason, timestamp)
            except Exception:
                self.callback_errors += 1
                logger.exception("Track reset callback failed")

    # ------------------------------------------------------------------ housekeeping

    def reset(self) -> None:
        """Reset tracking state; camera, surfaces, plane and callbacks are kept."""
        self.detector.reset()
        self.tracker.reset()
        self.collision_detector.reset()
        self.frame_slot.clear()
        self.event_slot.clear()
        self.frame_counter = 0
        if self.performance_monitor:
            self.performance_monitor.reset()
        logger.info("Pipeline reset")

    def close(self) -> None:
        self.detector.close()

    def get_stats(self) -> dict:
        return {
            "frames_received": self.frame_counter,
            "frames_processed": self.frames_processed,
            "frames_skipped": self.frames_skipped,
            "frames_without_camera": self.frames_without_camera,
            "observations": self.observations,
            "collisions": self.collisions,
            "callback_errors": self.callback_errors,
            "frames_dropped": self.frame_slot.dropped,
            "detector": self.detector.get_stats(),
            "depth": self.depth_estimator.get_stats(),
            "tracker": self.tracker.get_stats(),
            "collision": self.collision_detector.get_stats(),
        }

    def get_performance_report(self) -> dict:
        if not self.performance_monitor:
            return {}
        return self.performance_monitor.get_report()

    def _measure_stage(self, name: str):
        """Context manager for stage timing with graceful disable."""
        if self.performance_monitor:
            return self.performance_monitor.measure(name)
        return nullcontext()

    def _maybe_log_timing(self) -> None:
        """Periodically log stage timings."""
        interval = self.config.timing_log_interval_frames
        if not interval or not self.performance_monitor:
            return
        if self.frames_processed <= 0 or self.frames_processed % interval != 0:
            return

        report = self.performance_monitor.get_report()
        if not report:
            return

        stage_summary = ", ".join(
            f"{name}:{stats.get('recent_avg_ms', 0.0):.2f}ms"
            for name, stats in sorted(report.items())
        )
        logger.info(
            "Pipeline timing @frame %d → %s | bottleneck=%s observations=%d collisions=%d",
            self.frame_counter, stage_summary, self.performance_monitor.bottleneck(),
            self.observations, self.collisions,
        )
