import argparse
import logging
import time

from dxl_sim.control.motor_config import MotorConfig
from dxl_sim.env.pybullet_env import PyBulletEnv
from dxl_sim.logger.csv_logger import CsvLogger
from dxl_sim.plugin.dynamixel_motor import (
    COMMAND_TOPIC,
    SET_SPEED_SERVICE,
    STATE_TOPIC,
    TORQUE_ENABLE_SERVICE,
    VELOCITY_COMMAND_TOPIC,
    DynamixelMotorPlugin,
)
from dxl_sim.transport.bus import MessageBus
from dxl_sim.transport.messages import Float64, JointState, SetSpeedRequest, TorqueEnableRequest


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Single Dynamixel joint demo: position command -> goal seek -> hold (optional torque off)."
    )
    parser.add_argument("--gui", action="store_true", help="Use PyBullet GUI.")
    parser.add_argument("--seconds", type=float, default=4.0, help="Sim duration [s]. Default: 4.0")
    parser.add_argument("--hz", type=float, default=240.0, help="Sim frequency [Hz]. Default: 240")
    parser.add_argument("--gravity", type=float, default=9.81, help="Gravity magnitude [m/s^2]. Default: 9.81")

    # Body
    parser.add_argument("--urdf", type=str, default="assets/urdf/single_joint_arm.urdf")
    parser.add_argument("--joint", type=str, default="motor_joint", help="Joint driven by the motor.")
    parser.add_argument("--body-z", type=float, default=0.05)

    # Motor config
    parser.add_argument("--namespace", type=str, default="", help="Robot namespace. Default: '' (topics /dynamixel_motor/...)")
    parser.add_argument("--motor-name", type=str, default=None, help="Telemetry name. Default: joint name.")
    parser.add_argument("--motor-id", type=int, default=1)
    parser.add_argument("--reduction", type=float, default=1.0, help="Gear reduction (demultiply) value, nonzero.")
    parser.add_argument("--default-pos", type=float, default=0.0, help="Initial motor position [rad].")
    parser.add_argument("--vel-limit", type=float, default=1.0, help="Default goal-seek speed [rad/s].")
    parser.add_argument("--allowed-error", type=float, default=0.01, help="Goal-reached tolerance [rad].")
    parser.add_argument("--torque-limit", type=float, default=10.0, help="Default torque limit [N*m].")
    parser.add_argument("--load-axis", type=int, default=2, choices=[0, 1, 2], help="Reaction torque axis (0:x 1:y 2:z).")
    parser.add_argument("--seed", type=int, default=None, help="Temperature noise seed.")

    # Scenario
    parser.add_argument("--goal", type=float, default=1.0, help="Position goal [rad] sent at t=0.")
    parser.add_argument("--speed", type=float, default=None, help="Goal-seek speed [rad/s] set via /set_speed at t=0.")
    parser.add_argument("--velocity", type=float, default=None, help="If set, send a velocity command [rad/s] at t=0 instead of --goal.")
    parser.add_argument("--torque-off-at", type=float, default=None, help="Disable torque via /torque_enable at this time [s].")

    # Logging
    parser.add_argument("--log-csv", type=str, default=None, help="Write per-tick telemetry to this CSV path.")
    parser.add_argument("--log-flush-every", type=int, default=50, help="Flush CSV every N rows. Default: 50")
    parser.add_argument("--log-every", type=int, default=60, help="Print state every N steps (0: off). Default: 60")
    parser.add_argument("--verbose", action="store_true", help="Show DEBUG logs of the motor plugin.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    hz = float(args.hz)
    dt = 1.0 / hz

    cfg = MotorConfig(
        robot_namespace=str(args.namespace),
        joint=str(args.joint),
        motor_name=args.motor_name,
        motor_id=int(args.motor_id),
        reduction_value=float(args.reduction),
        default_pos=float(args.default_pos),
        default_vel_limit=float(args.vel_limit),
        allowed_error=float(args.allowed_error),
        default_torque_limit=float(args.torque_limit),
        reaction_torque_axis=int(args.load_axis),
        temperature_seed=args.seed,
    )

    env = PyBulletEnv(gui=bool(args.gui), time_step=dt, gravity=float(args.gravity))
    bus = MessageBus()
    motor = DynamixelMotorPlugin()
    csv_logger = None
    try:
        env.load_plane()
        env.load_body_urdf(str(args.urdf), base_pos=(0.0, 0.0, float(args.body_z)), use_fixed_base=True)
        joint = env.find_joint(cfg.joint, reaction_torque_axis=cfg.reaction_torque_axis)
        if not motor.load(cfg, joint, bus, world=env):
            print("[error] motor plugin failed to load")
            return 1

        last: dict[str, JointState] = {}

        def _on_state(msg: JointState):
            last["msg"] = msg
            if csv_logger is not None:
                csv_logger.write_joint_state(msg, t=env.sim_time, joint_velocity=joint.get_velocity())

        bus.subscribe(cfg.topic_name(STATE_TOPIC), _on_state)

        if args.log_csv:
            csv_logger = CsvLogger(path=args.log_csv, flush_every=int(args.log_flush_every))
            csv_logger.open()

        if args.speed is not None:
            bus.call(cfg.topic_name(SET_SPEED_SERVICE), SetSpeedRequest(speed=float(args.speed)))
        if args.velocity is not None:
            bus.publish(cfg.topic_name(VELOCITY_COMMAND_TOPIC), Float64(float(args.velocity)))
        else:
            bus.publish(cfg.topic_name(COMMAND_TOPIC), Float64(float(args.goal)))

        n_steps = max(1, int(float(args.seconds) * hz))
        torque_off_step = None if args.torque_off_at is None else int(float(args.torque_off_at) * hz)
        print(f"[info] running for {float(args.seconds):.1f}s ({n_steps} steps @ {hz:.1f}Hz) motor={motor.motor_name!r}")
        for k in range(n_steps):
            if torque_off_step is not None and k == torque_off_step:
                res = bus.call(cfg.topic_name(TORQUE_ENABLE_SERVICE), TorqueEnableRequest(torque_enable=False))
                print(f"[info] torque disabled at t={env.sim_time:.3f}s success={res.success}")

            env.step(1)
            if bool(args.gui):
                time.sleep(dt)

            msg = last.get("msg")
            if msg is not None and int(args.log_every) > 0 and (k % int(args.log_every) == 0):
                print(
                    f"[step {k:06d}] pos={msg.current_pos:+.4f} goal={msg.goal_pos:+.4f} err={msg.error:+.4f} "
                    f"moving={msg.is_moving} load={msg.load:+.4f} temp={msg.motor_temps}"
                )

        st = motor.state
        print(f"[info] final pos={st.current_pos_rad:+.4f} rad error={st.error_rad:+.4f} rad mode={st.mode.value}")
    finally:
        if csv_logger is not None:
            csv_logger.close()
        motor.shutdown()
        env.disconnect()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
