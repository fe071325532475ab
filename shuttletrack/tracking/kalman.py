"""
Constant-velocity position filter with scalar variances shared across axes.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from shuttletrack.core import as_vector


@dataclass
class KalmanConfig:
    """Noise parameters for KalmanFilter3D."""
    process_noise: float = 0.1  # q, added to both variances on every predict
    measurement_noise: float = 0.05  # r, m^2 (~0.22 m std dev per axis)
    initial_position_variance: float = 1.0
    initial_velocity_variance: float = 1.0
    min_dt: float = 1e-3  # Below this the velocity is not re-derived

    def __post_init__(self):
        if self.measurement_noise <= 0:
            raise ValueError("measurement_noise must be positive")
        if self.process_noise < 0:
            raise ValueError("process_noise must be non-negative")


class KalmanFilter3D:
    """
    Smooths noisy 3D measurements into a position and velocity.

    predict(dt):  position += velocity*dt, P += V*dt^2 + q, V += q
    update(z, dt): predict(dt), gain = P/(P+r), position += gain*(z-position),
                   velocity = (z-position_predicted)/dt, P *= (1-gain)
    """

    def __init__(self, config: Optional[KalmanConfig] = None, initial_position=None):
        self.config = config or KalmanConfig()
        self.reset(np.zeros(3) if initial_position is None else initial_position)

    def reset(self, position) -> None:
        """Reinitialise at a raw sample with zero velocity and default variances."""
        self.position: NDArray[np.float64] = as_vector(position)
        self.velocity: NDArray[np.float64] = np.zeros(3)
        self.position_variance = self.config.initial_position_variance
        self.velocity_variance = self.config.initial_velocity_variance

    def predict(self, dt: float) -> None:
        self.position = self.position + self.velocity * dt
        self.position_variance += self.velocity_variance * dt * dt + self.config.process_noise
        self.velocity_variance += self.config.process_noise

    def update(self, measurement, dt: float) -> NDArray[np.float64]:
        """
        Fuse one measurement taken `dt` seconds after the previous one.

        Returns:
            Filtered position (copy)
        """
        measurement = as_vector(measurement)
        self.predict(dt)

        gain = self.position_variance / (self.position_variance + self.config.measurement_noise)
        innovation = measurement - self.position
        self.position = self.position + innovation * gain

        if dt > self.config.min_dt:
            self.velocity = innovation / dt

        self.position_variance *= (1.0 - gain)
        return self.position.copy()

    def predict_position(self, seconds_ahead: float) -> NDArray[np.float64]:
        """Extrapolated position; does not change filter state."""
        if seconds_ahead == 0:
            return self.position.copy()
        return self.position + self.velocity * seconds_ahead

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))
