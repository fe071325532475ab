"""
Tracking module - position filtering and track ownership.
"""
from .kalman import KalmanConfig, KalmanFilter3D
from .trajectory import TrackerConfig, TrajectoryTracker

__all__ = [
    "KalmanConfig",
    "KalmanFilter3D",
    "TrackerConfig",
    "TrajectoryTracker",
]
