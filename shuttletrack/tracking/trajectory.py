"""
Single-target track ownership.

The tracker owns one KalmanFilter3D for a continuous detection session and
decides when that session ends: a gap in observations, a high-confidence
observation far from the prediction, or a velocity no shuttle can reach.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple
import logging

import numpy as np
from numpy.typing import NDArray

from shuttletrack.core import TrackResetReason, TrackState, TrackUpdate, as_vector
from .kalman import KalmanConfig, KalmanFilter3D

logger = logging.getLogger(__name__)


@dataclass
class TrackerConfig:
    """Configuration for TrajectoryTracker."""
    history_size: int = 10  # Raw samples kept for velocity averaging
    min_confidence: float = 0.3  # Observations below this are ignored
    max_velocity: float = 50.0  # m/s, faster than any smash; filter resets above it
    stale_after_sec: float = 0.5  # Gap that ends the current track
    max_jump_distance: float = 1.5  # m from the predicted position
    jump_reset_confidence: float = 0.7  # Far observations below this are dropped instead
    velocity_agreement_ratio: float = 2.0  # Filter vs history speed cross-check
    moving_speed_threshold: float = 0.5  # m/s
    kalman: KalmanConfig = field(default_factory=KalmanConfig)


class TrajectoryTracker:
    """
    Filters 3D observations into a smoothed trajectory.

    Example:
        tracker = TrajectoryTracker()
        update = tracker.add_measurement(point, timestamp, confidence)
        if update.accepted:
            velocity = tracker.impact_velocity()
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        self.config = config or TrackerConfig()
        self.filter = KalmanFilter3D(self.config.kalman)
        self.history: Deque[Tuple[NDArray[np.float64], float]] = deque(maxlen=self.config.history_size)
        self.last_timestamp: Optional[float] = None
        self.has_track = False

        # Statistics
        self.measurements_accepted = 0
        self.measurements_rejected = 0
        self.reset_counts = {reason.value: 0 for reason in TrackResetReason}

        logger.info(
            f"TrajectoryTracker initialized: min_confidence={self.config.min_confidence}, "
            f"max_velocity={self.config.max_velocity}m/s, stale_after={self.config.stale_after_sec}s"
        )

    # ------------------------------------------------------------------ updates

    def _start_track(self, position: NDArray[np.float64], timestamp: float) -> None:
        self.filter.reset(position)
        self.history.clear()
        self.history.append((position.copy(), timestamp))
        self.last_timestamp = timestamp
        self.has_track = True

    def _restart(self, position, timestamp: float, reason: TrackResetReason) -> TrackUpdate:
        self.reset_counts[reason.value] += 1
        logger.info(f"Track reset ({reason.value}) at t={timestamp:.3f}")
        self._start_track(position, timestamp)
        self.measurements_accepted += 1
        return TrackUpdate(
            position=self.filter.position.copy(),
            velocity=self.filter.velocity.copy(),
            accepted=True,
            new_track=True,
            reset_reason=reason,
        )

    def _rejected(self) -> TrackUpdate:
        self.measurements_rejected += 1
        if not self.has_track:
            return TrackUpdate(position=None, velocity=None, accepted=False)
        return TrackUpdate(
            position=self.filter.position.copy(),
            velocity=self.filter.velocity.copy(),
            accepted=False,
        )

    def add_measurement(self, position, timestamp: float, confidence: float = 1.0) -> TrackUpdate:
        """
        Feed one 3D observation.

        Args:
            position: World position in metres
            timestamp: Stream timestamp in seconds
            confidence: Detection confidence in [0, 1]

        Returns:
            TrackUpdate describing the filtered state and any reset
        """
        if confidence < self.config.min_confidence:
            logger.debug("Observation below confidence floor (%.2f)", confidence)
            return self._rejected()

        position = as_vector(position)

        if not self.has_track:
            self._start_track(position, timestamp)
            self.measurements_accepted += 1
            return TrackUpdate(
                position=self.filter.position.copy(),
                velocity=self.filter.velocity.copy(),
                accepted=True,
                new_track=True,
            )

        dt = timestamp - self.last_timestamp
        if dt <= 0:
            logger.debug("Discarding out-of-order observation (dt=%.4f)", dt)
            return self._rejected()

        if dt > self.config.stale_after_sec:
            return self._restart(position, timestamp, TrackResetReason.STALE)

        predicted = self.filter.predict_position(dt)
        if np.linalg.norm(position - predicted) > self.config.max_jump_distance:
            if confidence >= self.config.jump_reset_confidence:
                return self._restart(position, timestamp, TrackResetReason.TRACK_JUMP)
            logger.debug("Dropping low-confidence outlier %.2fm from prediction",
                         np.linalg.norm(position - predicted))
            return self._rejected()

        self.filter.update(position, dt)

        if self.filter.speed > self.config.max_velocity:
            return self._restart(position, timestamp, TrackResetReason.VELOCITY_SPIKE)

        self.history.append((position.copy(), timestamp))
        self.last_timestamp = timestamp
        self.measurements_accepted += 1
        return TrackUpdate(
            position=self.filter.position.copy(),
            velocity=self.filter.velocity.copy(),
            accepted=True,
        )

    def reset(self) -> None:
        """Drop the current track."""
        if self.has_track:
            self.reset_counts[TrackResetReason.MANUAL.value] += 1
        self.history.clear()
        self.last_timestamp = None
        self.has_track = False
        self.filter.reset(np.zeros(3))

    # ------------------------------------------------------------------ queries

    @property
    def position(self) -> Optional[NDArray[np.float64]]:
        return self.filter.position.copy() if self.has_track else None

    @property
    def velocity(self) -> Optional[NDArray[np.float64]]:
        return self.filter.velocity.copy() if self.has_track else None

    @property
    def state(self) -> Optional[TrackState]:
        """Snapshot of the active track, or None."""
        if not self.has_track:
            return None
        return TrackState(
            position=self.filter.position.copy(),
            velocity=self.filter.velocity.copy(),
            position_variance=self.filter.position_variance,
            velocity_variance=self.filter.velocity_variance,
            history=[(p.copy(), t) for p, t in self.history],
        )

    def predict_position(self, seconds_ahead: float) -> Optional[NDArray[np.float64]]:
        if not self.has_track:
            return None
        return self.filter.predict_position(seconds_ahead)

    def trajectory_path(self, seconds_ahead: float = 0.5, steps: int = 5) -> List[NDArray[np.float64]]:
        """Evenly spaced predicted positions up to `seconds_ahead` (current position excluded)."""
        if not self.has_track or steps <= 0:
            return []
        step = seconds_ahead / steps
        return [self.filter.predict_position(step * (i + 1)) for i in range(steps)]

    def average_velocity(self) -> NDArray[np.float64]:
        """Mean per-step velocity over the raw history."""
        samples = list(self.history)
        velocities = []
        for (p0, t0), (p1, t1) in zip(samples, samples[1:]):
            dt = t1 - t0
            if dt > self.config.kalman.min_dt:
                velocities.append((p1 - p0) / dt)

        if not velocities:
            return np.zeros(3)
        return np.mean(velocities, axis=0)

    def impact_velocity(self) -> NDArray[np.float64]:
        """
        Velocity to report on impact.

        The filter velocity is used unless the raw-history average disagrees
        with it by more than velocity_agreement_ratio, in which case the
        average is trusted instead.
        """
        filtered = self.filter.velocity.copy()
        if len(self.history) < 2:
            return filtered

        average = self.average_velocity()
        speed_f = float(np.linalg.norm(filtered))
        speed_a = float(np.linalg.norm(average))
        tiny = 1e-6

        if speed_f < tiny and speed_a < tiny:
            return filtered
        if speed_f < tiny or speed_a < tiny:
            return average

        ratio = max(speed_f, speed_a) / min(speed_f, speed_a)
        if ratio > self.config.velocity_agreement_ratio:
            return average
        return filtered

    def is_moving(self) -> bool:
        return self.has_track and self.filter.speed > self.config.moving_speed_threshold

    def time_to_plane(self, plane_point, plane_normal) -> Optional[float]:
        """
        Seconds until the track reaches a plane at its current velocity.

        Returns:
            Positive time, or None when not approaching (or nearly parallel)
        """
        if not self.has_track:
            return None
        normal = as_vector(plane_normal)
        normal = normal / np.linalg.norm(normal)
        distance = float(np.dot(self.filter.position - as_vector(plane_point), normal))
        closing = float(np.dot(self.filter.velocity, normal))
        if abs(closing) < 0.01:
            return None
        t = -distance / closing
        return t if t > 0 else None

    def get_stats(self) -> dict:
        return {
            "has_track": self.has_track,
            "measurements_accepted": self.measurements_accepted,
            "measurements_rejected": self.measurements_rejected,
            "resets": dict(self.reset_counts),
            "history_length": len(self.history),
        }
