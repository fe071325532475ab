"""
Collision module - virtual net crossing detection.
"""
from .collision_state import CollisionState, CollisionStateMachine
from .plane_collision import CollisionConfig, PlaneCollisionDetector

__all__ = [
    "CollisionState",
    "CollisionStateMachine",
    "CollisionConfig",
    "PlaneCollisionDetector",
]
