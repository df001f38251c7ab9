from __future__ import annotations

import logging
from typing import Any, Mapping

from dxl_sim.control.control_cycle import ControlCycle, Joint
from dxl_sim.control.motor_config import MotorConfig
from dxl_sim.control.motor_state import MotorState
from dxl_sim.control.motor_store import MotorStateStore
from dxl_sim.control.sensor_noise import GaussianTemperature, TemperatureSource
from dxl_sim.transport.bus import BusError, MessageBus
from dxl_sim.transport.messages import (
    Float64,
    ServiceResponse,
    SetSpeedRequest,
    SetTorqueLimitRequest,
    TorqueEnableRequest,
    joint_state_from_motor_state,
)

logger = logging.getLogger(__name__)

COMMAND_TOPIC = "/command"
VELOCITY_COMMAND_TOPIC = "/vel_tor/command"
STATE_TOPIC = "/state"
SET_SPEED_SERVICE = "/set_speed"
TORQUE_ENABLE_SERVICE = "/torque_enable"
SET_TORQUE_LIMIT_SERVICE = "/set_torque_limit"


class DynamixelMotorPlugin:
    """
    1 関節に取り付けた Dynamixel サーボのシミュレーション.

    load() wires the motor to the bus (commands, services, telemetry) and,
    when a world is given, to its update-begin event. Each world update runs
    one control cycle: sample the joint, publish JointState, actuate the joint.

    A failed load leaves the plugin inert: on_world_update() does nothing.
    """

    PLUGIN_NAME = "DynamixelMotorPlugin"

    def __init__(self, *, temperature: TemperatureSource | None = None):
        self.alive = True
        self.config: MotorConfig | None = None
        self.motor_name = ""
        self._temperature = temperature
        self._joint: Joint | None = None
        self._bus: MessageBus | None = None
        self._world = None
        self._store: MotorStateStore | None = None
        self._cycle: ControlCycle | None = None
        self._subscriptions: list[tuple[str, Any]] = []
        self._services: list[str] = []
        self._state_topic = ""

    @property
    def is_loaded(self) -> bool:
        return self._cycle is not None

    @property
    def state(self) -> MotorState:
        if self._store is None:
            raise RuntimeError("Plugin not loaded yet. Call load() first.")
        return self._store.snapshot()

    def load(
        self,
        config: MotorConfig | Mapping[str, Any],
        joint: Joint | None,
        bus: MessageBus | None,
        world=None,
    ) -> bool:
        if joint is None:
            logger.critical("No joint was found")
            return False
        if bus is None or not bus.is_initialized:
            logger.critical(
                "The message bus has not been initialized, unable to load %s. Call MessageBus.init() first.",
                self.PLUGIN_NAME,
            )
            return False
        try:
            cfg = config if isinstance(config, MotorConfig) else MotorConfig.from_mapping(config)
        except (TypeError, ValueError) as e:
            logger.critical("Invalid motor configuration: %s", e)
            return False

        self.config = cfg
        self._joint = joint
        self._bus = bus
        self.motor_name = cfg.resolved_motor_name(str(getattr(joint, "name", "")))

        initial = cfg.initial_state()
        self._store = MotorStateStore(initial)
        joint.set_position(initial.joint_angle_rad)

        try:
            # services are exclusive per name; register them before the shared topics
            self._init_services()
            self._subscribe(cfg.topic_name(COMMAND_TOPIC), self._on_position_command)
            self._subscribe(cfg.topic_name(VELOCITY_COMMAND_TOPIC), self._on_velocity_command)
            bus.advertise(cfg.topic_name(STATE_TOPIC))
            self._state_topic = cfg.topic_name(STATE_TOPIC)
        except BusError as e:
            logger.critical("Unable to load %s on %s: %s", self.PLUGIN_NAME, cfg.topic_name(""), e)
            self._detach()
            self._store = None
            return False

        temperature = self._temperature
        if temperature is None:
            temperature = GaussianTemperature(seed=cfg.temperature_seed)
        self._cycle = ControlCycle(
            joint=joint,
            store=self._store,
            allowed_error=cfg.allowed_error,
            temperature=temperature,
            publish=self._publish_state,
        )

        if world is not None:
            world.connect_world_update_begin(self.on_world_update)
            self._world = world

        logger.info("Loaded %s for motor %r on %s", self.PLUGIN_NAME, self.motor_name, cfg.topic_name(""))
        return True

    def _subscribe(self, topic: str, callback):
        self._bus.subscribe(topic, callback)
        self._subscriptions.append((topic, callback))

    def _advertise_service(self, name: str, handler):
        self._bus.advertise_service(name, handler)
        self._services.append(name)

    def _init_services(self):
        cfg = self.config
        self._advertise_service(cfg.topic_name(SET_SPEED_SERVICE), self.set_speed_service)
        self._advertise_service(cfg.topic_name(TORQUE_ENABLE_SERVICE), self.torque_enable_service)
        self._advertise_service(cfg.topic_name(SET_TORQUE_LIMIT_SERVICE), self.set_torque_limit_service)

    # --- commands / services: one store mutation each ---

    def _on_position_command(self, msg: Float64):
        self._store.command_position(msg.data)
        logger.debug("%s: position goal %.4f rad", self.motor_name, float(msg.data))

    def _on_velocity_command(self, msg: Float64):
        self._store.command_velocity(msg.data)
        logger.debug("%s: velocity %.4f rad/s", self.motor_name, float(msg.data))

    def set_speed_service(self, req: SetSpeedRequest) -> ServiceResponse:
        self._store.set_velocity_limit(req.speed)
        return ServiceResponse(success=True)

    def torque_enable_service(self, req: TorqueEnableRequest) -> ServiceResponse:
        self._store.set_torque_enabled(req.torque_enable)
        return ServiceResponse(success=True)

    def set_torque_limit_service(self, req: SetTorqueLimitRequest) -> ServiceResponse:
        self._store.set_torque_limit(req.torque_limit)
        return ServiceResponse(success=True)

    # --- simulation loop ---

    def _publish_state(self, state: MotorState):
        # a bus shut down under a running world drops telemetry; actuation still runs
        if not self._bus.is_initialized:
            return
        try:
            self._bus.publish(self._state_topic, joint_state_from_motor_state(self.motor_name, state))
        except BusError as e:
            logger.debug("%s: telemetry dropped: %s", self.motor_name, e)

    def on_world_update(self) -> MotorState | None:
        if not self.alive or self._cycle is None:
            return None
        return self._cycle.step()

    def _detach(self):
        if self._world is not None:
            self._world.disconnect_world_update_begin(self.on_world_update)
            self._world = None
        if self._bus is not None:
            for topic, cb in self._subscriptions:
                self._bus.unsubscribe(topic, cb)
            for name in self._services:
                self._bus.unadvertise_service(name)
            if self._state_topic:
                self._bus.unadvertise(self._state_topic)
        self._subscriptions = []
        self._services = []
        self._state_topic = ""

    def shutdown(self):
        self.alive = False
        self._detach()
        logger.info("Shut down %s for motor %r", self.PLUGIN_NAME, self.motor_name)
