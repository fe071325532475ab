"""
Core module - shared data types and utilities.
"""
from .types import (
    DetectionMethod,
    NetSide,
    TrackResetReason,
    Frame,
    BoundingBox,
    Observation,
    PlaneRegion,
    CollisionEvent,
    TrackState,
    TrackUpdate,
    as_vector,
)
from .io_utils import load_yaml
from .performance_monitor import PerformanceMonitor, TimingStats

__all__ = [
    # Types
    "DetectionMethod",
    "NetSide",
    "TrackResetReason",
    "Frame",
    "BoundingBox",
    "Observation",
    "PlaneRegion",
    "CollisionEvent",
    "TrackState",
    "TrackUpdate",
    "as_vector",
    # I/O
    "load_yaml",
    # Performance
    "PerformanceMonitor",
    "TimingStats",
]
