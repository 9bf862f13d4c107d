"""In-memory store of the latest computed state per vehicle.

Records are immutable and replaced wholesale, so a reader always sees either
the previous or the new record for a vehicle. Writers for the same vehicle are
serialised by a per-vehicle lock while the new record is computed; the shared
mapping itself is only touched under a short guard lock.
"""

import datetime
import enum
import threading
from collections.abc import Callable
from dataclasses import dataclass

from app.core.exceptions import NotFoundError


class MotionStatus(str, enum.Enum):
    MOVING = "Moving"
    STOPPED = "Stopped"
    AT_STOP = "At Stop"
    OFFLINE = "Offline"


@dataclass(frozen=True)
class VehicleState:
    vehicle_id: str
    lat: float
    lon: float
    speed: float  # km/h, 0 = stationary
    status: MotionStatus
    stop_index: int  # index into the active variant's stops
    variant: str  # active route variant key
    updated: datetime.datetime  # UTC


class VehicleStateStore:
    """Owns the VehicleState records; the only place they are written."""

    def __init__(self) -> None:
        self._states: dict[str, VehicleState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, vehicle_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(vehicle_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[vehicle_id] = lock
            return lock

    def register(self, vehicle_id: str, state: VehicleState) -> None:
        with self._lock_for(vehicle_id), self._guard:
            self._states[vehicle_id] = state

    def __contains__(self, vehicle_id: str) -> bool:
        return vehicle_id in self._states

    def get(self, vehicle_id: str) -> VehicleState:
        state = self._states.get(vehicle_id)
        if state is None:
            raise NotFoundError(f"No state for bus {vehicle_id}")
        return state

    def snapshot(self) -> dict[str, VehicleState]:
        with self._guard:
            return dict(self._states)

    def update(
        self,
        vehicle_id: str,
        compute: Callable[[VehicleState], VehicleState],
    ) -> VehicleState:
        """Replace a vehicle's record with compute(previous).

        Nothing is written if compute raises.
        """
        with self._lock_for(vehicle_id):
            previous = self.get(vehicle_id)
            new_state = compute(previous)
            with self._guard:
                self._states[vehicle_id] = new_state
            return new_state
