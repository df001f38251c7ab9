from __future__ import annotations

from typing import Callable


class PyBulletJoint:
    """
    Single revolute/prismatic joint of a PyBullet multibody, seen as a motor joint.

    - angle: getJointState()[0]
    - reaction torque: joint force/torque sensor, component 3 + axis (Mx, My, Mz)
    - velocity / force limit: VELOCITY_CONTROL motor (targetVelocity, force)
    """

    def __init__(self, p, body_id: int, joint_index: int, *, name: str = "", reaction_torque_axis: int = 0):
        self._p = p
        self.body_id = int(body_id)
        self.index = int(joint_index)
        self.name = str(name)
        axis = int(reaction_torque_axis)
        if axis not in (0, 1, 2):
            raise ValueError(f"reaction_torque_axis must be 0, 1 or 2, got {axis!r}")
        self._axis = axis
        self._target_velocity = 0.0
        self._force_limit = 0.0
        self._p.enableJointForceTorqueSensor(self.body_id, self.index, True)

    def get_angle(self) -> float:
        return float(self._p.getJointState(self.body_id, self.index)[0])

    def get_velocity(self) -> float:
        return float(self._p.getJointState(self.body_id, self.index)[1])

    def get_reaction_torque(self) -> float:
        reaction = self._p.getJointState(self.body_id, self.index)[2]  # (Fx,Fy,Fz,Mx,My,Mz)
        return float(reaction[3 + self._axis])

    def set_position(self, angle_rad: float) -> None:
        self._p.resetJointState(self.body_id, self.index, targetValue=float(angle_rad), targetVelocity=0.0)

    def set_velocity_param(self, velocity_rad_s: float) -> None:
        self._target_velocity = float(velocity_rad_s)
        self._apply_motor()

    def set_force_limit_param(self, force_limit: float) -> None:
        self._force_limit = max(0.0, float(force_limit))
        self._apply_motor()

    def _apply_motor(self):
        self._p.setJointMotorControl2(
            self.body_id,
            self.index,
            self._p.VELOCITY_CONTROL,
            targetVelocity=float(self._target_velocity),
            force=float(self._force_limit),
        )


class PyBulletEnv:
    """
    PyBullet の最小ラッパ.
    - connect/disconnect
    - load plane / URDF
    - joint lookup by name
    - world update-begin callbacks (run before every stepSimulation)
    - step
    """

    def __init__(
        self,
        *,
        gui: bool = False,
        time_step: float = 1.0 / 240.0,
        gravity: float = 9.81,
    ):
        import pybullet as p
        import pybullet_data

        self._p = p
        self._cid = self._p.connect(self._p.GUI if bool(gui) else self._p.DIRECT)
        if self._cid < 0:
            raise RuntimeError("Failed to connect to PyBullet.")

        self._p.setAdditionalSearchPath(pybullet_data.getDataPath())
        self._p.setGravity(0.0, 0.0, -float(gravity))
        self._p.setTimeStep(float(time_step))

        self.time_step = float(time_step)
        self._body_id: int | None = None
        self._plane_id: int | None = None
        self._update_callbacks: list[Callable[[], object]] = []
        self._sim_time = 0.0

    def disconnect(self):
        if self._cid is not None:
            try:
                self._p.disconnect()
            finally:
                self._cid = None

    def __del__(self):
        try:
            self.disconnect()
        except Exception:
            pass

    @property
    def p(self):
        return self._p

    @property
    def sim_time(self) -> float:
        return float(self._sim_time)

    @property
    def body_id(self) -> int:
        if self._body_id is None:
            raise RuntimeError("Body not loaded yet. Call load_body_urdf() first.")
        return int(self._body_id)

    def load_plane(self):
        if self._plane_id is None:
            self._plane_id = int(self._p.loadURDF("plane.urdf"))
        return int(self._plane_id)

    def load_body_urdf(
        self,
        urdf_path: str,
        *,
        base_pos=(0.0, 0.0, 0.2),
        base_quat=(0.0, 0.0, 0.0, 1.0),
        use_fixed_base: bool = True,
    ) -> int:
        self._body_id = int(
            self._p.loadURDF(
                str(urdf_path),
                basePosition=base_pos,
                baseOrientation=base_quat,
                useFixedBase=bool(use_fixed_base),
            )
        )
        return int(self._body_id)

    def _joint_name_to_index(self) -> dict[str, int]:
        n = int(self._p.getNumJoints(self.body_id))
        out: dict[str, int] = {}
        for j in range(n):
            info = self._p.getJointInfo(self.body_id, j)
            name = info[1].decode("utf-8")
            out[name] = int(j)
        return out

    def find_joint(self, name: str, *, reaction_torque_axis: int = 0) -> PyBulletJoint | None:
        """
        Resolve a joint by URDF name. Returns None when the body has no such joint.
        """
        idx = self._joint_name_to_index().get(str(name))
        if idx is None:
            return None
        return PyBulletJoint(self._p, self.body_id, idx, name=str(name), reaction_torque_axis=reaction_torque_axis)

    def connect_world_update_begin(self, callback: Callable[[], object]):
        self._update_callbacks.append(callback)

    def disconnect_world_update_begin(self, callback: Callable[[], object]):
        if callback in self._update_callbacks:
            self._update_callbacks.remove(callback)

    def step(self, n: int = 1):
        for _ in range(int(n)):
            for cb in list(self._update_callbacks):
                cb()
            self._p.stepSimulation()
            self._sim_time += self.time_step
