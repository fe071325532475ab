"""
Pinhole camera pose: screen rays and world-to-screen projection.

Camera space follows the OpenCV convention (+X right, +Y down, +Z forward),
screen origin is the top-left pixel. `rotation` maps camera-space vectors to
world space and `position` is the camera centre in world space.
"""
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray


@dataclass
class CameraPose:
    """Intrinsics plus world pose of the camera for one frame."""
    fx: float
    fy: float
    cx: float
    cy: float
    width: int
    height: int
    rotation: NDArray[np.float64] = field(default_factory=lambda: np.eye(3))
    position: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.rotation = np.asarray(self.rotation, dtype=np.float64).reshape(3, 3)
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        if self.fx <= 0 or self.fy <= 0:
            raise ValueError("Focal lengths must be positive")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Image size must be positive")

    @classmethod
    def from_fov(
        cls,
        width: int,
        height: int,
        horizontal_fov_deg: float = 60.0,
        rotation: Optional[NDArray[np.float64]] = None,
        position: Optional[NDArray[np.float64]] = None,
    ) -> "CameraPose":
        """Build a centred pinhole camera with square pixels from a field of view."""
        f = (width / 2.0) / math.tan(math.radians(horizontal_fov_deg) / 2.0)
        return cls(
            fx=f,
            fy=f,
            cx=width / 2.0,
            cy=height / 2.0,
            width=width,
            height=height,
            rotation=np.eye(3) if rotation is None else rotation,
            position=np.zeros(3) if position is None else position,
        )

    def screen_ray(self, screen_point: Tuple[float, float]) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Ray through a pixel.

        Returns:
            (origin, unit direction) in world space
        """
        u, v = screen_point
        direction_cam = np.array(
            [(u - self.cx) / self.fx, (v - self.cy) / self.fy, 1.0],
            dtype=np.float64,
        )
        direction = self.rotation @ direction_cam
        direction /= np.linalg.norm(direction)
        return self.position.copy(), direction

    def point_at_distance(self, screen_point: Tuple[float, float], distance: float) -> NDArray[np.float64]:
        """World point `distance` metres along the pixel's ray."""
        origin, direction = self.screen_ray(screen_point)
        return origin + direction * distance

    def project(self, world_point) -> Optional[Tuple[float, float]]:
        """
        Project a world point to pixel coordinates.

        Returns:
            (u, v) or None when the point is behind the camera
        """
        p_cam = self.rotation.T @ (np.asarray(world_point, dtype=np.float64) - self.position)
        if p_cam[2] <= 1e-9:
            return None
        u = self.fx * p_cam[0] / p_cam[2] + self.cx
        v = self.fy * p_cam[1] / p_cam[2] + self.cy
        return (float(u), float(v))

    def is_visible(self, world_point) -> bool:
        """True when the point projects inside the image in front of the camera."""
        uv = self.project(world_point)
        if uv is None:
            return False
        u, v = uv
        return 0.0 <= u <= self.width and 0.0 <= v <= self.height

    def scaled(self, sx: float, sy: float) -> "CameraPose":
        """Intrinsics for a resized image with the same pose."""
        return CameraPose(
            fx=self.fx * sx,
            fy=self.fy * sy,
            cx=self.cx * sx,
            cy=self.cy * sy,
            width=max(1, int(round(self.width * sx))),
            height=max(1, int(round(self.height * sy))),
            rotation=self.rotation.copy(),
            position=self.position.copy(),
        )
