from __future__ import annotations

import dataclasses
from typing import Callable, Protocol

import numpy as np

from dxl_sim.control.motor_state import MotorMode, MotorState
from dxl_sim.control.motor_store import MotorStateStore
from dxl_sim.control.sensor_noise import GaussianTemperature, TemperatureSource


class Joint(Protocol):
    """
    Simulated joint driven by one motor (single DoF).
    """

    name: str

    def get_angle(self) -> float: ...

    def get_reaction_torque(self) -> float: ...

    def set_position(self, angle_rad: float) -> None: ...

    def set_velocity_param(self, velocity_rad_s: float) -> None: ...

    def set_force_limit_param(self, force_limit: float) -> None: ...


def sample(joint: Joint, state: MotorState, temperature: TemperatureSource) -> MotorState:
    """
    関節を読み取り、新しいスナップショットを返す（関節へは書き込まない）.

      current_pos_rad = joint_angle * demultiply_value
      load            = joint reaction torque
      motor_temp      = temperature()
    error_rad / is_moving follow from the snapshot fields.
    """
    angle = float(joint.get_angle())
    return dataclasses.replace(
        state,
        current_pos_rad=angle * float(state.demultiply_value),
        load=float(joint.get_reaction_torque()),
        motor_temp=int(temperature()),
    )


def goal_reached(state: MotorState, allowed_error: float) -> bool:
    return abs(float(state.error_rad)) < float(allowed_error)


def target_velocity(state: MotorState, allowed_error: float) -> float | None:
    """
    Joint velocity commanded in POSITION mode:
      sign(error) * velocity_limit * sign(demultiply)  while |error| >= allowed_error
      0                                                once the goal is reached
    None in VELOCITY mode (the joint velocity is left untouched there).
    """
    if state.mode is not MotorMode.POSITION:
        return None
    if goal_reached(state, allowed_error):
        return 0.0
    return float(
        np.sign(state.error_rad) * float(state.velocity_limit_rad_s) * np.sign(float(state.demultiply_value))
    )


def force_limit(state: MotorState) -> float:
    return float(state.torque_limit) if bool(state.torque_enabled) else 0.0


def actuate(joint: Joint, state: MotorState, allowed_error: float) -> None:
    v = target_velocity(state, allowed_error)
    if v is not None:
        joint.set_velocity_param(v)
    # torque off -> free spinning joint (no holding torque)
    joint.set_force_limit_param(force_limit(state))


class ControlCycle:
    """
    1 シミュレーションティック: sample -> store -> publish -> actuate.

    Sampling and storing happen under the store lock so a command arriving in
    between is never overwritten by a stale snapshot.
    """

    def __init__(
        self,
        *,
        joint: Joint,
        store: MotorStateStore,
        allowed_error: float = 0.01,
        temperature: TemperatureSource | None = None,
        publish: Callable[[MotorState], None] | None = None,
    ):
        self.joint = joint
        self.store = store
        self.allowed_error = float(allowed_error)
        self.temperature = GaussianTemperature() if temperature is None else temperature
        self.publish = publish

    def step(self) -> MotorState:
        state = self.store.update(lambda s: sample(self.joint, s, self.temperature))
        if self.publish is not None:
            self.publish(state)
        actuate(self.joint, state, self.allowed_error)
        return state
