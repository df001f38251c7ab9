import unittest

from dxl_sim.control.motor_config import MotorConfig
from dxl_sim.control.motor_state import MotorMode
from dxl_sim.control.sensor_noise import ConstantTemperature
from dxl_sim.plugin.dynamixel_motor import DynamixelMotorPlugin
from dxl_sim.transport.bus import BusError, MessageBus
from dxl_sim.transport.messages import (
    Float64,
    JointState,
    SetSpeedRequest,
    SetTorqueLimitRequest,
    TorqueEnableRequest,
)


class FakeJoint:
    def __init__(self, name: str = "wrist_joint", angle: float = 0.0, reaction_torque: float = 0.0):
        self.name = name
        self.angle = float(angle)
        self.reaction_torque = float(reaction_torque)
        self.velocity = None
        self.force_limit = None

    def get_angle(self) -> float:
        return self.angle

    def get_reaction_torque(self) -> float:
        return self.reaction_torque

    def set_position(self, angle_rad: float) -> None:
        self.angle = float(angle_rad)

    def set_velocity_param(self, velocity_rad_s: float) -> None:
        self.velocity = float(velocity_rad_s)

    def set_force_limit_param(self, force_limit: float) -> None:
        self.force_limit = float(force_limit)


class FakeWorld:
    def __init__(self):
        self.callbacks = []

    def connect_world_update_begin(self, cb):
        self.callbacks.append(cb)

    def disconnect_world_update_begin(self, cb):
        if cb in self.callbacks:
            self.callbacks.remove(cb)

    def step(self):
        for cb in list(self.callbacks):
            cb()


def _load(config=None, **kwargs):
    bus = MessageBus()
    joint = FakeJoint(**kwargs)
    motor = DynamixelMotorPlugin(temperature=ConstantTemperature(24))
    ok = motor.load(MotorConfig() if config is None else config, joint, bus)
    return motor, joint, bus, ok


class TestPluginLoad(unittest.TestCase):
    def test_missing_joint_is_fatal(self):
        motor = DynamixelMotorPlugin()
        with self.assertLogs("dxl_sim.plugin.dynamixel_motor", level="CRITICAL"):
            ok = motor.load(MotorConfig(), None, MessageBus())
        self.assertFalse(ok)
        self.assertFalse(motor.is_loaded)
        self.assertIsNone(motor.on_world_update())

    def test_uninitialized_bus_is_fatal(self):
        motor = DynamixelMotorPlugin()
        with self.assertLogs("dxl_sim.plugin.dynamixel_motor", level="CRITICAL"):
            ok = motor.load(MotorConfig(), FakeJoint(), MessageBus(initialized=False))
        self.assertFalse(ok)
        self.assertFalse(motor.is_loaded)

    def test_invalid_config_is_fatal(self):
        motor = DynamixelMotorPlugin()
        with self.assertLogs("dxl_sim.plugin.dynamixel_motor", level="CRITICAL"):
            ok = motor.load({"reduction_value": "0"}, FakeJoint(), MessageBus())
        self.assertFalse(ok)

    def test_load_moves_joint_to_default_position(self):
        motor, joint, bus, ok = _load(MotorConfig(default_pos=1.0, reduction_value=4.0))
        self.assertTrue(ok)
        self.assertAlmostEqual(joint.angle, 0.25, places=12)
        self.assertEqual(motor.state.goal_pos_rad, 1.0)

    def test_second_motor_on_same_namespace_fails_cleanly(self):
        first, joint, bus, ok = _load()
        self.assertTrue(ok)

        second = DynamixelMotorPlugin(temperature=ConstantTemperature())
        with self.assertLogs("dxl_sim.plugin.dynamixel_motor", level="CRITICAL"):
            ok = second.load(MotorConfig(), FakeJoint(name="other_joint"), bus)
        self.assertFalse(ok)
        self.assertFalse(second.is_loaded)
        self.assertIsNone(second.on_world_update())

        # only the first motor still listens, and its wiring is intact
        self.assertEqual(bus.publish("/dynamixel_motor/command", Float64(0.6)), 1)
        self.assertEqual(first.state.goal_pos_rad, 0.6)
        self.assertTrue(bus.has_service("/dynamixel_motor/set_speed"))
        self.assertTrue(bus.is_advertised("/dynamixel_motor/state"))
        self.assertTrue(bus.call("/dynamixel_motor/set_speed", SetSpeedRequest(speed=0.3)).success)
        self.assertEqual(first.state.velocity_limit_rad_s, 0.3)

    def test_load_registers_topics_and_services(self):
        motor, joint, bus, ok = _load(MotorConfig(robot_namespace="/robot"))
        self.assertTrue(ok)
        self.assertTrue(bus.is_advertised("/robot/dynamixel_motor/state"))
        for name in ("/set_speed", "/torque_enable", "/set_torque_limit"):
            self.assertTrue(bus.has_service("/robot/dynamixel_motor" + name))
        self.assertEqual(motor.motor_name, "wrist_joint")


class TestPluginHandlers(unittest.TestCase):
    def test_position_command(self):
        motor, joint, bus, _ = _load()
        bus.publish("/dynamixel_motor/vel_tor/command", Float64(1.0))
        bus.publish("/dynamixel_motor/command", Float64(0.75))
        st = motor.state
        self.assertIs(st.mode, MotorMode.POSITION)
        self.assertEqual(st.goal_pos_rad, 0.75)

    def test_velocity_command(self):
        motor, joint, bus, _ = _load()
        bus.publish("/dynamixel_motor/vel_tor/command", Float64(-0.5))
        st = motor.state
        self.assertIs(st.mode, MotorMode.VELOCITY)
        self.assertEqual(st.velocity_rad_s, -0.5)

    def test_services_return_success(self):
        motor, joint, bus, _ = _load()
        res = bus.call("/dynamixel_motor/set_speed", SetSpeedRequest(speed=2.5))
        self.assertTrue(res.success)
        self.assertEqual(motor.state.velocity_limit_rad_s, 2.5)

        res = bus.call("/dynamixel_motor/torque_enable", TorqueEnableRequest(torque_enable=False))
        self.assertTrue(res.success)
        self.assertFalse(motor.state.torque_enabled)

        res = bus.call("/dynamixel_motor/set_torque_limit", SetTorqueLimitRequest(torque_limit=3.0))
        self.assertTrue(res.success)
        self.assertEqual(motor.state.torque_limit, 3.0)

    def test_unknown_service(self):
        _, _, bus, _ = _load()
        with self.assertRaises(BusError):
            bus.call("/dynamixel_motor/set_torque", SetTorqueLimitRequest(torque_limit=1.0))


class TestPluginWorldUpdate(unittest.TestCase):
    def test_world_update_publishes_joint_state(self):
        cfg = MotorConfig(motor_name="elbow", motor_id=4, reduction_value=2.0, default_torque_limit=5.0)
        bus = MessageBus()
        world = FakeWorld()
        joint = FakeJoint(reaction_torque=0.3)
        motor = DynamixelMotorPlugin(temperature=ConstantTemperature(26))
        self.assertTrue(motor.load(cfg, joint, bus, world=world))

        received: list[JointState] = []
        bus.subscribe("/dynamixel_motor/state", received.append)
        bus.publish("/dynamixel_motor/command", Float64(1.0))

        joint.angle = 0.25
        world.step()

        self.assertEqual(len(received), 1)
        msg = received[0]
        self.assertEqual(msg.name, "elbow")
        self.assertEqual(msg.motor_ids, [4])
        self.assertEqual(msg.motor_temps, [26])
        self.assertAlmostEqual(msg.current_pos, 0.5, places=12)
        self.assertEqual(msg.goal_pos, 1.0)
        self.assertAlmostEqual(msg.error, 0.5, places=12)
        self.assertFalse(msg.is_moving)
        self.assertEqual(msg.velocity, 0.0)
        self.assertEqual(msg.load, 0.3)

        self.assertEqual(joint.velocity, 1.0)
        self.assertEqual(joint.force_limit, 5.0)

    def test_torque_disable_frees_joint_and_reenable_restores_limit(self):
        motor, joint, bus, _ = _load(MotorConfig(default_torque_limit=7.5))
        bus.call("/dynamixel_motor/torque_enable", TorqueEnableRequest(torque_enable=False))
        motor.on_world_update()
        self.assertEqual(joint.force_limit, 0.0)

        bus.call("/dynamixel_motor/torque_enable", TorqueEnableRequest(torque_enable=True))
        motor.on_world_update()
        self.assertEqual(joint.force_limit, 7.5)

    def test_velocity_mode_sets_moving_flag(self):
        motor, joint, bus, _ = _load()
        bus.publish("/dynamixel_motor/vel_tor/command", Float64(0.8))
        st = motor.on_world_update()
        self.assertTrue(st.is_moving)
        self.assertEqual(st.error_rad, 0.0)
        # joint velocity is not driven in velocity mode
        self.assertIsNone(joint.velocity)

    def test_tick_after_bus_shutdown_still_actuates(self):
        motor, joint, bus, _ = _load(MotorConfig(default_torque_limit=4.0))
        bus.publish("/dynamixel_motor/command", Float64(1.0))
        bus.shutdown()

        st = motor.on_world_update()
        self.assertIsNotNone(st)
        self.assertEqual(st.goal_pos_rad, 1.0)
        self.assertEqual(joint.velocity, 1.0)
        self.assertEqual(joint.force_limit, 4.0)

    def test_shutdown_detaches_everything(self):
        cfg = MotorConfig()
        bus = MessageBus()
        world = FakeWorld()
        joint = FakeJoint()
        motor = DynamixelMotorPlugin(temperature=ConstantTemperature())
        self.assertTrue(motor.load(cfg, joint, bus, world=world))
        self.assertEqual(len(world.callbacks), 1)

        motor.shutdown()
        self.assertEqual(world.callbacks, [])
        self.assertFalse(bus.has_service("/dynamixel_motor/set_speed"))
        self.assertFalse(bus.is_advertised("/dynamixel_motor/state"))
        self.assertEqual(bus.publish("/dynamixel_motor/command", Float64(1.0)), 0)
        self.assertIsNone(motor.on_world_update())


if __name__ == "__main__":
    unittest.main()
