from __future__ import annotations

from dataclasses import dataclass, field

from dxl_sim.control.motor_state import MotorState


@dataclass(frozen=True)
class Float64:
    data: float = 0.0


@dataclass(frozen=True)
class JointState:
    """
    Telemetry published once per tick (dynamixel_msgs/JointState layout).
    """

    name: str = ""
    motor_ids: list[int] = field(default_factory=list)
    motor_temps: list[int] = field(default_factory=list)
    current_pos: float = 0.0
    goal_pos: float = 0.0
    is_moving: bool = False
    error: float = 0.0
    velocity: float = 0.0
    load: float = 0.0

    def as_row(self) -> dict:
        return {
            "name": self.name,
            "motor_id": self.motor_ids[0] if self.motor_ids else "",
            "motor_temp": self.motor_temps[0] if self.motor_temps else "",
            "current_pos": self.current_pos,
            "goal_pos": self.goal_pos,
            "is_moving": int(self.is_moving),
            "error": self.error,
            "velocity": self.velocity,
            "load": self.load,
        }


def joint_state_from_motor_state(name: str, state: MotorState) -> JointState:
    return JointState(
        name=str(name),
        motor_ids=[int(state.motor_id)],
        motor_temps=[int(state.motor_temp)],
        current_pos=float(state.current_pos_rad),
        goal_pos=float(state.goal_pos_rad),
        is_moving=bool(state.is_moving),
        error=float(state.error_rad),
        velocity=float(state.velocity_rad_s),
        load=float(state.load),
    )


@dataclass(frozen=True)
class SetSpeedRequest:
    speed: float = 0.0


@dataclass(frozen=True)
class TorqueEnableRequest:
    torque_enable: bool = True


@dataclass(frozen=True)
class SetTorqueLimitRequest:
    torque_limit: float = 0.0


@dataclass(frozen=True)
class ServiceResponse:
    success: bool = True
