"""
Collision detector state machine.

State flow:
- UNINITIALIZED: No net plane set, every update is a no-op
- ARMED: Plane known, waiting for the first track position
- TRACKING: Plane known and a previous position is held for segment tests

The cooldown after an emitted event runs on stream timestamps, independent
of the state, and is shared by the 3D and screen-ray paths.
"""
from enum import Enum
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class CollisionState(Enum):
    """States of the collision detector."""
    UNINITIALIZED = "uninitialized"  # No plane
    ARMED = "armed"  # Plane set, no previous position
    TRACKING = "tracking"  # Previous position available


class CollisionStateMachine:
    """
    Tracks detector state and the post-event cooldown.

    1. UNINITIALIZED → ARMED: plane set
    2. ARMED → TRACKING: first position observed
    3. TRACKING → ARMED: track reset
    4. any → UNINITIALIZED: plane cleared
    """

    def __init__(self, cooldown_sec: float = 0.5):
        self.cooldown_sec = cooldown_sec
        self.state = CollisionState.UNINITIALIZED
        self.last_event_time: Optional[float] = None
        self.state_transitions = 0

    def _transition_to(self, new_state: CollisionState) -> None:
        if new_state == self.state:
            return
        logger.debug(f"Collision state: {self.state.value} → {new_state.value}")
        self.state = new_state
        self.state_transitions += 1

    def plane_set(self) -> None:
        self._transition_to(CollisionState.ARMED)

    def plane_cleared(self) -> None:
        self._transition_to(CollisionState.UNINITIALIZED)

    def position_observed(self) -> None:
        if self.state == CollisionState.ARMED:
            self._transition_to(CollisionState.TRACKING)

    def track_reset(self) -> None:
        if self.state == CollisionState.TRACKING:
            self._transition_to(CollisionState.ARMED)

    def in_cooldown(self, timestamp: float) -> bool:
        """True while `timestamp` is within cooldown_sec of the last event."""
        if self.last_event_time is None:
            return False
        return (timestamp - self.last_event_time) < self.cooldown_sec

    def event_emitted(self, timestamp: float) -> None:
        self.last_event_time = timestamp

    def reset(self) -> None:
        """Forget cooldown and the previous position, keep the plane."""
        self.last_event_time = None
        self.track_reset()

    @property
    def is_armed(self) -> bool:
        return self.state != CollisionState.UNINITIALIZED
