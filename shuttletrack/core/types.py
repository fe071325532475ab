"""
Core data types for the shuttle tracking system.
Defines contracts between detection, tracking and collision modules.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, List
import math
import numpy as np
from numpy.typing import NDArray


class DetectionMethod(Enum):
    """Which detector produced an observation."""
    FRAME_DELTA = "frame_delta"
    COLOR_THRESHOLD = "color_threshold"
    ML_MODEL = "ml_model"


class NetSide(Enum):
    """Side of the net a shuttle arrived from (relative to the plane normal)."""
    A = "A"  # Positive half-space
    B = "B"  # Negative half-space (or on the plane)


class TrackResetReason(Enum):
    """Why the tracker discarded its current track."""
    STALE = "stale"
    VELOCITY_SPIKE = "velocity_spike"
    TRACK_JUMP = "track_jump"
    MANUAL = "manual"


def as_vector(value) -> NDArray[np.float64]:
    """Convert any 3-sequence to a float64 vector (copy)."""
    vec = np.array(value, dtype=np.float64).reshape(-1)
    if vec.shape != (3,):
        raise ValueError(f"Expected 3D vector, got shape {vec.shape}")
    return vec


@dataclass
class Frame:
    """
    Represents a single captured frame with metadata.
    """
    image: NDArray[np.uint8]  # Raw image data (H, W, C) or (H, W)
    timestamp: float  # Stream timestamp in seconds
    frame_id: int = 0  # Sequential frame counter

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.image.shape

    @property
    def is_grayscale(self) -> bool:
        return len(self.image.shape) == 2


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned pixel rectangle (top-left origin).
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError("BoundingBox dimensions must be non-negative")

    @classmethod
    def from_center(cls, cx: float, cy: float, width: float, height: float) -> "BoundingBox":
        return cls(cx - width / 2.0, cy - height / 2.0, width, height)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        """Width over height (height floored at 0.1 px)."""
        return self.width / max(self.height, 0.1)

    @property
    def equivalent_diameter(self) -> float:
        """Diameter of the circle with the same area."""
        return 2.0 * math.sqrt(self.area / math.pi)

    def scaled(self, sx: float, sy: float) -> "BoundingBox":
        return BoundingBox(self.x * sx, self.y * sy, self.width * sx, self.height * sy)

    def iou(self, other: "BoundingBox") -> float:
        """Intersection over union with another box."""
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.x + self.width, other.x + other.width)
        y2 = min(self.y + self.height, other.y + other.height)

        inter = max(0.0, x2 - x1) * max(0.0, y2 - y1)
        union = self.area + other.area - inter
        if union <= 0:
            return 0.0
        return inter / union


@dataclass(frozen=True)
class Observation:
    """
    One detection result for one processed frame.

    The screen point is in full-resolution pixel coordinates. The world point
    is filled in by the depth estimator and stays None until then.
    """
    screen_point: Tuple[float, float]
    confidence: float
    timestamp: float
    method: DetectionMethod
    bounding_box: Optional[BoundingBox] = None
    world_point: Optional[NDArray[np.float64]] = None
    depth_estimated: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    def with_world_point(self, world_point, estimated: bool, depth_confidence: float = 1.0) -> "Observation":
        """
        Return a copy carrying a resolved 3D position.

        The copy's confidence is capped at `depth_confidence`, so a detection
        placed at a guessed depth is never trusted more than the guess.
        """
        return Observation(
            screen_point=self.screen_point,
            confidence=min(self.confidence, float(depth_confidence)),
            timestamp=self.timestamp,
            method=self.method,
            bounding_box=self.bounding_box,
            world_point=as_vector(world_point),
            depth_estimated=estimated,
        )

    def scaled(self, sx: float, sy: float) -> "Observation":
        """Map screen-space fields from a downsampled buffer back to full resolution."""
        box = self.bounding_box.scaled(sx, sy) if self.bounding_box is not None else None
        return Observation(
            screen_point=(self.screen_point[0] * sx, self.screen_point[1] * sy),
            confidence=self.confidence,
            timestamp=self.timestamp,
            method=self.method,
            bounding_box=box,
            world_point=self.world_point,
            depth_estimated=self.depth_estimated,
        )


@dataclass(frozen=True)
class PlaneRegion:
    """
    Finite rectangular net region in world space (metres).

    `origin` is the centre of the rectangle, `normal` points toward side A,
    `up_axis` orients the height direction inside the plane.
    """
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    normal: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    width: float = 5.18  # Regulation badminton net width
    height: float = 1.55
    up_axis: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    half_thickness: float = 0.1  # Surface band either side of the plane


@dataclass(frozen=True)
class CollisionEvent:
    """
    A confirmed net crossing, emitted to the consumer callback.
    """
    contact_point: NDArray[np.float64]
    side: NetSide
    impact_speed: float  # m/s
    approach_direction: NDArray[np.float64]  # Unit vector
    timestamp_millis: int  # Stream timestamp of the crossing sample
    confidence: float = 1.0
    synthetic: bool = False  # True for the 2D screen-ray fallback


@dataclass
class TrackState:
    """
    Snapshot of the active track.
    """
    position: NDArray[np.float64]
    velocity: NDArray[np.float64]
    position_variance: float
    velocity_variance: float
    history: List[Tuple[NDArray[np.float64], float]] = field(default_factory=list)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))


@dataclass
class TrackUpdate:
    """
    Result of feeding one measurement to the tracker.
    """
    position: Optional[NDArray[np.float64]]
    velocity: Optional[NDArray[np.float64]]
    accepted: bool
    new_track: bool = False
    reset_reason: Optional[TrackResetReason] = None
