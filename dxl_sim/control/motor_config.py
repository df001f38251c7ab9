from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from dxl_sim.control.motor_state import MotorMode, MotorState


def _coerce(value: Any, kind: type) -> Any:
    """
    SDF-like scalar coercion: strings from a config file become the field type.
    """
    if value is None:
        return None
    if kind is bool and isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
        raise ValueError(f"cannot interpret {value!r} as bool")
    if kind is int:
        return int(float(value)) if isinstance(value, str) else int(value)
    return kind(value)


@dataclass(frozen=True)
class MotorConfig:
    """
    Per-actuator parameters, read once at load time.

    reduction_value is the gear ratio between the joint angle and the reported
    motor angle; it must be nonzero because its sign drives the actuation sign.
    """

    robot_namespace: str = ""
    joint: str = ""
    motor_name: str | None = None
    motor_id: int = 0
    reduction_value: float = 1.0
    default_pos: float = 0.0
    default_vel_limit: float = 1.0
    allowed_error: float = 0.01
    default_torque_limit: float = 10.0
    base_topic_name: str = "dynamixel_motor"
    reaction_torque_axis: int = 0  # 0:x 1:y 2:z
    temperature_seed: int | None = None

    def __post_init__(self):
        if float(self.reduction_value) == 0.0:
            raise ValueError("reduction_value must be nonzero")
        if int(self.reaction_torque_axis) not in (0, 1, 2):
            raise ValueError(f"reaction_torque_axis must be 0, 1 or 2, got {self.reaction_torque_axis!r}")

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "MotorConfig":
        kinds = {
            "robot_namespace": str,
            "joint": str,
            "motor_name": str,
            "motor_id": int,
            "reduction_value": float,
            "default_pos": float,
            "default_vel_limit": float,
            "allowed_error": float,
            "default_torque_limit": float,
            "base_topic_name": str,
            "reaction_torque_axis": int,
            "temperature_seed": int,
        }
        kwargs = {k: _coerce(params[k], kind) for k, kind in kinds.items() if k in params}
        return cls(**kwargs)

    def resolved_motor_name(self, joint_name: str = "") -> str:
        if self.motor_name:
            return str(self.motor_name)
        return str(joint_name or self.joint)

    def topic_name(self, suffix: str) -> str:
        return f"{self.robot_namespace}/{self.base_topic_name}{suffix}"

    def initial_state(self) -> MotorState:
        pos = float(self.default_pos)
        return MotorState(
            mode=MotorMode.POSITION,
            current_pos_rad=pos,
            goal_pos_rad=pos,
            velocity_rad_s=0.0,
            velocity_limit_rad_s=float(self.default_vel_limit),
            torque_enabled=True,
            torque_limit=float(self.default_torque_limit),
            demultiply_value=float(self.reduction_value),
            motor_id=int(self.motor_id),
        )
