"""Drag-and-drop rescheduling state for one calendar session"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from ...shared.timeutil import anchor_noon

logger = logging.getLogger(__name__)


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED_VALID = "dropped_valid"
    DROPPED_INVALID = "dropped_invalid"


@dataclass(frozen=True)
class RescheduleRequest:
    appointment_id: str
    date: date
    mutation_id: str

    @property
    def appointment_date(self) -> datetime:
        """The stored instant: local noon of the target day"""
        return anchor_noon(self.date)


class DragController:
    """
    idle -> dragging -> dropped_valid | dropped_invalid -> idle

    Holds the dragged appointment id for the length of one gesture. A drop
    is valid only onto a cell with a concrete date; anything else is a no-op.
    """

    def __init__(self):
        self.state = DragState.IDLE
        self.dragged_id: Optional[str] = None
        self.last_outcome: Optional[DragState] = None

    @property
    def dragging(self) -> bool:
        return self.state == DragState.DRAGGING

    def pick_up(self, appointment_id: str) -> None:
        if not appointment_id:
            raise ValueError("appointment_id is required")
        self.state = DragState.DRAGGING
        self.dragged_id = appointment_id

    def drop(self, target: Optional[date]) -> Optional[RescheduleRequest]:
        """Finish the gesture; returns the reschedule to apply, or None for a no-op"""
        if self.state != DragState.DRAGGING or self.dragged_id is None:
            return None

        appointment_id = self.dragged_id
        if target is None:
            self.last_outcome = DragState.DROPPED_INVALID
            request = None
        else:
            self.last_outcome = DragState.DROPPED_VALID
            request = RescheduleRequest(appointment_id, target, uuid.uuid4().hex)
            logger.debug(f"Dropped {appointment_id} on {target.isoformat()}")

        self._reset()
        return request

    def cancel(self) -> None:
        if self.state == DragState.DRAGGING:
            self.last_outcome = DragState.DROPPED_INVALID
        self._reset()

    def _reset(self) -> None:
        self.state = DragState.IDLE
        self.dragged_id = None
