"""
Virtual net collision detection.

Consecutive track positions form a segment; an event fires when that segment
crosses (or comes within contact tolerance of) the finite net rectangle.
A secondary path tests a screen ray against the net for 2D-only detections.
"""
from dataclasses import dataclass
from typing import Iterable, Optional
import logging

import numpy as np
from numpy.typing import NDArray

from shuttletrack.core import CollisionEvent, NetSide, PlaneRegion, as_vector
from shuttletrack.geometry import NetGeometry
from .collision_state import CollisionState, CollisionStateMachine

logger = logging.getLogger(__name__)


@dataclass
class CollisionConfig:
    """Configuration for PlaneCollisionDetector."""
    cooldown_sec: float = 0.5  # No further events within this window
    min_segment_length: float = 1e-3  # m, shorter segments are skipped
    plane_epsilon: float = 1e-6  # |distance| at or below this counts as on the plane
    contact_tolerance: float = 0.1  # m, near-contact reach beyond the segment end

    # Screen-ray fallback (no depth available)
    enable_screen_ray: bool = True
    max_ray_distance: float = 20.0
    fallback_side: str = "A"
    fallback_impact_speed: float = 0.0
    fallback_confidence: float = 0.5


class PlaneCollisionDetector:
    """
    Decides whether the track crosses the virtual net.

    Example:
        detector = PlaneCollisionDetector()
        detector.set_plane(PlaneRegion(origin=(0, 0.8, 0), normal=(0, 0, 1)))
        event = detector.update(filtered_position, timestamp, velocity)
    """

    def __init__(self, config: Optional[CollisionConfig] = None):
        self.config = config or CollisionConfig()
        self.state_machine = CollisionStateMachine(self.config.cooldown_sec)
        self.geometry: Optional[NetGeometry] = None

        self.previous_position: Optional[NDArray[np.float64]] = None
        self.previous_timestamp: Optional[float] = None

        # Statistics
        self.events_emitted = 0
        self.events_suppressed = 0
        self.outside_region = 0
        self.short_segments = 0

        logger.info(
            f"PlaneCollisionDetector initialized: cooldown={self.config.cooldown_sec}s, "
            f"contact_tolerance={self.config.contact_tolerance}m"
        )

    @property
    def state(self) -> CollisionState:
        return self.state_machine.state

    # ------------------------------------------------------------------ plane

    def set_plane(self, region: PlaneRegion) -> bool:
        """
        Replace the net region and recompute the cached plane.

        Returns:
            False when the region has a zero normal (detector stays uninitialized)
        """
        try:
            geometry = NetGeometry(region)
        except ValueError as e:
            logger.warning(f"Rejected net region: {e}")
            self.clear_plane()
            return False

        self.geometry = geometry
        self.forget_position()
        self.state_machine.plane_set()
        logger.info(
            f"Net plane set: origin={geometry.origin.round(3).tolist()}, "
            f"normal={geometry.normal.round(3).tolist()}, "
            f"size={region.width:.2f}x{region.height:.2f}m"
        )
        return True

    def clear_plane(self) -> None:
        self.geometry = None
        self.forget_position()
        self.state_machine.plane_cleared()

    def forget_position(self) -> None:
        """Start a new segment chain (e.g. after a track reset); cooldown is kept."""
        self.previous_position = None
        self.previous_timestamp = None
        self.state_machine.track_reset()

    def reset(self) -> None:
        """Drop the previous position and cooldown; keep the plane."""
        self.previous_position = None
        self.previous_timestamp = None
        self.state_machine.reset()

    # ------------------------------------------------------------------ events

    def _side_of(self, point: NDArray[np.float64]) -> NetSide:
        return NetSide.A if self.geometry.signed_distance(point) > 0 else NetSide.B

    def _emit(self, event: CollisionEvent, timestamp: float) -> CollisionEvent:
        self.state_machine.event_emitted(timestamp)
        self.events_emitted += 1
        logger.info(
            f"Net collision: side={event.side.value}, speed={event.impact_speed:.2f}m/s, "
            f"t={event.timestamp_millis}ms{' (screen ray)' if event.synthetic else ''}"
        )
        return event

    def _crossing_parameter(self, d_prev: float, d_cur: float, length: float) -> Optional[float]:
        """Segment parameter where the plane is reached, or None."""
        eps = self.config.plane_epsilon

        if (d_prev > eps and d_cur <= eps) or (d_prev < -eps and d_cur >= -eps):
            return d_prev / (d_prev - d_cur)

        # Near contact: still approaching and the extension reaches the plane
        # within contact_tolerance past the current position
        if abs(d_prev) > eps and d_prev * d_cur > 0 and abs(d_cur) < abs(d_prev):
            t = d_prev / (d_prev - d_cur)
            if t <= 1.0 + self.config.contact_tolerance / length:
                return t

        return None

    def update(self, position, timestamp: float, velocity=None) -> Optional[CollisionEvent]:
        """
        Test the segment from the previous position to `position`.

        Args:
            position: Filtered world position
            timestamp: Stream timestamp in seconds
            velocity: Track velocity used for impact speed (segment speed if None)

        Returns:
            CollisionEvent or None
        """
        if not self.state_machine.is_armed or self.geometry is None:
            return None

        current = as_vector(position)

        if self.previous_position is None:
            self.previous_position = current
            self.previous_timestamp = timestamp
            self.state_machine.position_observed()
            return None

        previous = self.previous_position
        segment = current - previous
        length = float(np.linalg.norm(segment))
        if length < self.config.min_segment_length:
            self.short_segments += 1
            return None

        previous_timestamp = self.previous_timestamp
        self.previous_position = current
        self.previous_timestamp = timestamp

        if self.geometry.degenerate:
            return None

        d_prev = self.geometry.signed_distance(previous)
        d_cur = self.geometry.signed_distance(current)
        t = self._crossing_parameter(d_prev, d_cur, length)
        if t is None:
            return None

        contact = previous + segment * t
        if not self.geometry.contains(contact):
            self.outside_region += 1
            logger.debug("Plane crossing outside net bounds at %s", contact.round(3).tolist())
            return None

        if self.state_machine.in_cooldown(timestamp):
            self.events_suppressed += 1
            logger.debug("Collision suppressed by cooldown at t=%.3f", timestamp)
            return None

        if velocity is not None:
            speed = float(np.linalg.norm(as_vector(velocity)))
        else:
            dt = timestamp - previous_timestamp
            speed = length / dt if dt > 0 else 0.0

        event = CollisionEvent(
            contact_point=contact,
            side=self._side_of(previous),
            impact_speed=speed,
            approach_direction=segment / length,
            timestamp_millis=int(round(timestamp * 1000)),
        )
        return self._emit(event, timestamp)

    def check_screen_ray(self, origin, direction, timestamp: float) -> Optional[CollisionEvent]:
        """
        Screen-ray fallback for detections without depth.

        Produces a synthetic event with the configured fallback side, speed
        and confidence when the ray hits the net within max_ray_distance.
        """
        if not self.config.enable_screen_ray:
            return None
        if not self.state_machine.is_armed or self.geometry is None:
            return None

        direction = as_vector(direction)
        norm = np.linalg.norm(direction)
        if norm < 1e-9:
            return None
        direction = direction / norm
        origin = as_vector(origin)

        t = self.geometry.intersect_ray(origin, direction, self.config.max_ray_distance)
        if t is None:
            return None

        if self.state_machine.in_cooldown(timestamp):
            self.events_suppressed += 1
            return None

        event = CollisionEvent(
            contact_point=origin + direction * t,
            side=NetSide(self.config.fallback_side),
            impact_speed=self.config.fallback_impact_speed,
            approach_direction=direction,
            timestamp_millis=int(round(timestamp * 1000)),
            confidence=self.config.fallback_confidence,
            synthetic=True,
        )
        return self._emit(event, timestamp)

    def predict_crossing(self, path: Iterable, start=None) -> Optional[NDArray[np.float64]]:
        """
        First point where a predicted path crosses the net region.

        Args:
            path: Future positions (e.g. TrajectoryTracker.trajectory_path())
            start: Segment start, defaults to the previous observed position

        Returns:
            Crossing point inside the region, or None
        """
        if self.geometry is None or self.geometry.degenerate:
            return None

        previous = as_vector(start) if start is not None else self.previous_position
        for point in path:
            point = as_vector(point)
            if previous is not None:
                d0 = self.geometry.signed_distance(previous)
                d1 = self.geometry.signed_distance(point)
                if d0 != d1 and d0 * d1 <= 0:
                    contact = previous + (point - previous) * (d0 / (d0 - d1))
                    if self.geometry.contains(contact):
                        return contact
            previous = point
        return None

    def get_stats(self) -> dict:
        return {
            "state": self.state.value,
            "events_emitted": self.events_emitted,
            "events_suppressed": self.events_suppressed,
            "outside_region": self.outside_region,
            "short_segments": self.short_segments,
        }
