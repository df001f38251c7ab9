from __future__ import annotations

import enum
from dataclasses import dataclass


class MotorMode(enum.Enum):
    POSITION = "position"
    VELOCITY = "velocity"


@dataclass(frozen=True)
class MotorState:
    """
    Dynamixel モータ状態のスナップショット（アクチュエータ毎に1つ、丸ごと置き換え）.

    - mode: which control law actuate() applies
    - current_pos_rad: joint angle * demultiply_value
    - goal_pos_rad: target angle used in POSITION mode
    - velocity_rad_s: commanded speed (VELOCITY mode)
    - velocity_limit_rad_s: speed used to approach goal_pos_rad
    - torque_limit: force limit applied to the joint while torque is enabled
    - load: reaction torque on the joint [N*m]
    - motor_temp: synthetic temperature [degC]
    - demultiply_value: gear reduction between joint and motor (nonzero)

    error_rad and is_moving are derived, never stored.
    """

    mode: MotorMode = MotorMode.POSITION
    current_pos_rad: float = 0.0
    goal_pos_rad: float = 0.0
    velocity_rad_s: float = 0.0
    velocity_limit_rad_s: float = 1.0
    torque_enabled: bool = True
    torque_limit: float = 10.0
    load: float = 0.0
    motor_temp: int = 0
    demultiply_value: float = 1.0
    motor_id: int = 0

    @property
    def error_rad(self) -> float:
        if self.mode is MotorMode.POSITION:
            return float(self.goal_pos_rad) - float(self.current_pos_rad)
        return 0.0

    @property
    def is_moving(self) -> bool:
        return float(self.velocity_rad_s) != 0.0 and bool(self.torque_enabled)

    @property
    def joint_angle_rad(self) -> float:
        # Inverse of the gear reduction applied when sampling.
        return float(self.current_pos_rad) / float(self.demultiply_value)
