from __future__ import annotations

import dataclasses
import threading
from typing import Callable

from dxl_sim.control.motor_state import MotorMode, MotorState


class MotorStateStore:
    """
    MotorState の唯一の持ち主（単一ロック）.

    The simulation thread and the command/service handlers are concurrent
    writers; every read and write goes through one lock and always handles the
    whole snapshot, so a partially applied command is never observed.
    Values are accepted as-is (no range checks), like the real servo.
    """

    def __init__(self, initial: MotorState | None = None):
        self._lock = threading.Lock()
        self._state = MotorState() if initial is None else initial

    def snapshot(self) -> MotorState:
        with self._lock:
            return self._state

    def update(self, fn: Callable[[MotorState], MotorState]) -> MotorState:
        """
        Replace the state with fn(state) while holding the lock.
        Returns the stored snapshot.
        """
        with self._lock:
            new_state = fn(self._state)
            if not isinstance(new_state, MotorState):
                raise TypeError(f"update() expects a MotorState, got {type(new_state).__name__}")
            self._state = new_state
            return new_state

    def _replace(self, **changes) -> MotorState:
        return self.update(lambda s: dataclasses.replace(s, **changes))

    def command_position(self, goal_pos_rad: float) -> MotorState:
        return self._replace(mode=MotorMode.POSITION, goal_pos_rad=float(goal_pos_rad))

    def command_velocity(self, velocity_rad_s: float) -> MotorState:
        return self._replace(mode=MotorMode.VELOCITY, velocity_rad_s=float(velocity_rad_s))

    def set_torque_enabled(self, enabled: bool) -> MotorState:
        return self._replace(torque_enabled=bool(enabled))

    def set_torque_limit(self, torque_limit: float) -> MotorState:
        return self._replace(torque_limit=float(torque_limit))

    def set_velocity_limit(self, velocity_limit_rad_s: float) -> MotorState:
        return self._replace(velocity_limit_rad_s=float(velocity_limit_rad_s))
