"""
Screen point to world point conversion.

A ray through the pixel is intersected with the nearest known surface. When
no surface is hit the point is placed along the ray at a depth inferred from
the apparent object size, or at a fixed default depth, and flagged as an
estimate with reduced confidence.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import logging

import numpy as np
from numpy.typing import NDArray

from shuttletrack.core import BoundingBox
from .camera import CameraPose
from .plane import SurfacePlane, intersect_ray_plane

logger = logging.getLogger(__name__)


@dataclass
class DepthConfig:
    """Configuration for depth estimation."""
    default_depth: float = 3.0  # Metres along the ray when nothing else is known
    fallback_confidence: float = 0.5  # Confidence of non-surface estimates
    surface_confidence: float = 1.0

    # Size-based depth: an object of object_diameter_m spans
    # reference_pixel_diameter pixels at reference_distance metres
    object_diameter_m: float = 0.065  # Shuttlecock skirt diameter
    reference_pixel_diameter: float = 50.0
    reference_distance: float = 2.0
    use_size_depth: bool = True

    min_depth: float = 0.5
    max_depth: float = 10.0
    max_ray_distance: float = 20.0  # Ignore surface hits farther than this


@dataclass
class DepthEstimate:
    """Resolved 3D position for a screen point."""
    world_point: NDArray[np.float64]
    confidence: float
    is_estimate: bool  # False only for surface hits
    method: str  # "surface", "size" or "default"


class DepthEstimator:
    """
    Converts detector screen points to world positions.

    Example:
        estimator = DepthEstimator()
        result = estimator.estimate((320, 240), camera, surfaces=[floor])
    """

    def __init__(self, config: Optional[DepthConfig] = None):
        self.config = config or DepthConfig()

        self.surface_hits = 0
        self.fallbacks = 0

        logger.info(
            f"DepthEstimator initialized: default_depth={self.config.default_depth}m, "
            f"depth_range=[{self.config.min_depth}, {self.config.max_depth}]m"
        )

    def depth_from_size(self, pixel_diameter: float, object_diameter: Optional[float] = None) -> float:
        """
        Distance inferred from apparent size.

        Args:
            pixel_diameter: Apparent diameter in full-resolution pixels
            object_diameter: Physical diameter in metres (defaults to config)

        Returns:
            Depth in metres clamped to [min_depth, max_depth], or the default
            depth for non-positive sizes
        """
        if pixel_diameter is None or pixel_diameter <= 0:
            return self.config.default_depth

        depth = self.config.reference_distance * self.config.reference_pixel_diameter / pixel_diameter
        if object_diameter is not None and self.config.object_diameter_m > 0:
            depth *= object_diameter / self.config.object_diameter_m

        return float(np.clip(depth, self.config.min_depth, self.config.max_depth))

    def _nearest_surface_hit(
        self,
        origin: NDArray[np.float64],
        direction: NDArray[np.float64],
        surfaces: Sequence[SurfacePlane],
    ) -> Optional[float]:
        best = None
        for surface in surfaces:
            t = intersect_ray_plane(origin, direction, surface.point, surface.normal)
            if t is None or t <= 0 or t > self.config.max_ray_distance:
                continue
            if best is None or t < best:
                best = t
        return best

    def estimate(
        self,
        screen_point: Tuple[float, float],
        camera: CameraPose,
        surfaces: Optional[Sequence[SurfacePlane]] = None,
        pixel_diameter: Optional[float] = None,
    ) -> DepthEstimate:
        """
        Resolve a screen point to a world point.

        Args:
            screen_point: Full-resolution pixel coordinates
            camera: Current camera pose
            surfaces: Known real-world surfaces (may be empty)
            pixel_diameter: Apparent object diameter, enables size-based depth

        Returns:
            DepthEstimate (always succeeds)
        """
        origin, direction = camera.screen_ray(screen_point)

        if surfaces:
            t = self._nearest_surface_hit(origin, direction, surfaces)
            if t is not None:
                self.surface_hits += 1
                return DepthEstimate(
                    world_point=origin + direction * t,
                    confidence=self.config.surface_confidence,
                    is_estimate=False,
                    method="surface",
                )

        self.fallbacks += 1
        if self.config.use_size_depth and pixel_diameter is not None and pixel_diameter > 0:
            depth = self.depth_from_size(pixel_diameter)
            method = "size"
        else:
            depth = self.config.default_depth
            method = "default"

        logger.debug("No surface hit for %s, using %s depth %.2fm", screen_point, method, depth)
        return DepthEstimate(
            world_point=origin + direction * depth,
            confidence=self.config.fallback_confidence,
            is_estimate=True,
            method=method,
        )

    def estimate_from_box(
        self,
        box: BoundingBox,
        camera: CameraPose,
        surfaces: Optional[Sequence[SurfacePlane]] = None,
    ) -> DepthEstimate:
        """Resolve the centre of a bounding box, using its size for depth."""
        return self.estimate(box.center, camera, surfaces, pixel_diameter=max(box.width, box.height))

    def get_stats(self) -> dict:
        return {
            "surface_hits": self.surface_hits,
            "fallbacks": self.fallbacks,
        }
