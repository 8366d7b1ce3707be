"""Driver logic for one joint motor on a CAN bus."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .commands import (
    GET_CONFIGS,
    GET_LIMIT_CMDS,
    GET_PID_CMDS,
    GET_STATUS_CMDS,
    MotorCommand,
    MotorMode,
)
from .frames import (
    DEGREES_PER_REV,
    ENCODER_RESOLUTION,
    Frame,
    compose_bytes,
    parse_bytes,
    position_convention,
    velocity_convention,
    velocity_inverse_convention,
)
from .status import MotorStatus

logger = logging.getLogger(__name__)

NO_CAN_FRAME_SEC = 5
ZERO_POSITION = 0
MOVING_THRESHOLD = 16  # encoder steps
DEBUG_ROTATION_LIMIT = 135.0  # degrees
MAX_CAN_ID = 0x7F
PID_MASK = 0x7FF

_U32 = 0xFFFFFFFF

_VALUE_COMMANDS = frozenset(
    {
        MotorCommand.SET_POSITION_MODE,
        MotorCommand.SET_MAX_VELOCITY,
        MotorCommand.SET_MIN_VELOCITY,
        MotorCommand.SET_MAX_POS_CURRENT,
        MotorCommand.SET_MIN_NEG_CURRENT,
        MotorCommand.SET_POSITION_P,
        MotorCommand.SET_POSITION_D,
        MotorCommand.SET_VELOCITY_P,
        MotorCommand.SET_VELOCITY_I,
        MotorCommand.SET_POSITION_OFFSET,
    }
)
_PENDING_MODE_COMMANDS = frozenset(
    {MotorCommand.SET_CURRENT_MODE, MotorCommand.SET_VELOCITY_MODE}
)

# Replies that are acknowledged but carry nothing the driver keeps.
_IGNORED_REPLIES = frozenset(
    {
        MotorCommand.CLEAR_ERRORS,
        MotorCommand.MOTOR_HALT,
        MotorCommand.GET_OVERVOLT_THRESH,
        MotorCommand.GET_UNDERVOLT_THRESH,
        MotorCommand.GET_MOTOR_OT_THRESH,
        MotorCommand.GET_BOARD_OT_THRESH,
        MotorCommand.SET_MAX_VELOCITY,
        MotorCommand.SET_MIN_VELOCITY,
        MotorCommand.SET_POSITION_MODE,
        MotorCommand.SET_MAX_POS_CURRENT,
        MotorCommand.SET_MIN_NEG_CURRENT,
        MotorCommand.SET_POSITION_P,
        MotorCommand.SET_POSITION_D,
        MotorCommand.SET_VELOCITY_P,
        MotorCommand.SET_VELOCITY_I,
    }
)

# Replies stored as plain numbers: command -> status attribute.
_FLOAT_REPLIES = {
    MotorCommand.GET_CURRENT: "current",
    MotorCommand.GET_TARGET_CURRENT: "target_current",
    MotorCommand.GET_BUS_VOLTAGE: "bus_voltage",
    MotorCommand.GET_MOTOR_TEMP: "motor_temp",
    MotorCommand.GET_BOARD_TEMP: "board_temp",
    MotorCommand.GET_ENCODER_VOLTAGE: "encoder_voltage",
    MotorCommand.GET_ENCODER_STATUS: "encoder_status",
    MotorCommand.GET_MAX_CURRENT: "max_current_abs",
    MotorCommand.GET_MAX_POS_CURRENT: "max_forward_current",
    MotorCommand.GET_MAX_NEG_CURRENT: "min_backward_current",
    MotorCommand.GET_MAX_ACCEL: "max_forward_accel",
    MotorCommand.GET_MIN_ACCEL: "min_backward_accel",
}

_UNSIGNED_REPLIES = {
    MotorCommand.GET_TARGET_POSITION: "target_position",
    MotorCommand.GET_ERROR_STATUS: "error_status",
    MotorCommand.SET_POSITION_OFFSET: "position_offset",
    MotorCommand.GET_POSITION_OFFSET: "position_offset",
    MotorCommand.GET_MAX_POSITION: "max_forward_position",
    MotorCommand.GET_MIN_POSITION: "min_backward_position",
}

_PID_REPLIES = {
    MotorCommand.GET_VELOCITY_P: "velocity_p",
    MotorCommand.GET_VELOCITY_I: "velocity_i",
    MotorCommand.GET_VELOCITY_D: "velocity_d",
    MotorCommand.GET_POSITION_P: "position_p",
    MotorCommand.GET_POSITION_I: "position_i",
    MotorCommand.GET_POSITION_D: "position_d",
}

_VELOCITY_REPLIES = {
    MotorCommand.GET_VELOCITY: "velocity",
    MotorCommand.GET_TARGET_VELOCITY: "target_velocity",
    MotorCommand.GET_MAX_VELOCITY: "max_forward_velocity",
    MotorCommand.GET_MIN_VELOCITY: "min_backward_velocity",
}


class ConfigurationError(ValueError):
    """Raised when the driver configuration cannot drive a motor."""


@dataclass(frozen=True)
class DriverConfig:
    """Parameters of one joint motor."""

    can_id: int = 0
    gear_ratio: float = 0.0
    position_offset: int = 0

    position_p: int = 0
    position_d: int = 0
    velocity_p: int = 0
    velocity_i: int = 0

    max_forward_current: int = 0
    min_backward_current: int = 0
    max_forward_velocity: float = 0.0
    min_backward_velocity: float = 0.0

    auto_halt_timeout: int = 0

    def validate(self) -> None:
        """Raise ConfigurationError if the parameters are unusable."""
        if self.can_id == 0 or not 0 < self.can_id <= MAX_CAN_ID:
            raise ConfigurationError("CAN ID does not set")
        if self.gear_ratio == 0.0:
            raise ConfigurationError("gear ratio does not set")
        if self.max_forward_velocity <= 0 or self.min_backward_velocity >= 0:
            raise ConfigurationError("Invalid velocity limits")


@dataclass
class JointMotorStatus:
    """Status report published by the driver."""

    stamp: float = 0.0
    can_id: int = 0
    gear_ratio: float = 0.0
    is_disconnected: bool = False

    position_offset: int = 0
    current_degree: float = 0.0
    mode: int = 0
    current: float = 0.0
    target_current: float = 0.0
    velocity: float = 0.0
    target_velocity: float = 0.0
    position: int = 0
    target_position: int = 0
    error_status: int = 0
    bus_voltage: float = 0.0

    motor_temp: float = 0.0
    board_temp: float = 0.0

    encoder_voltage: float = 0.0
    encoder_status: float = 0.0

    max_forward_velocity: float = 0.0
    min_backward_velocity: float = 0.0
    max_forward_position: int = 0
    min_backward_position: int = 0
    max_forward_current: float = 0.0
    min_backward_current: float = 0.0

    position_p: float = 0.0
    position_i: float = 0.0
    position_d: float = 0.0
    velocity_p: float = 0.0
    velocity_i: float = 0.0
    velocity_d: float = 0.0
    current_p: float = 0.0
    current_i: float = 0.0
    current_d: float = 0.0


_STATUS_COPY_FIELDS = (
    "position_offset",
    "current_degree",
    "current",
    "target_current",
    "velocity",
    "target_velocity",
    "position",
    "target_position",
    "error_status",
    "bus_voltage",
    "motor_temp",
    "board_temp",
    "encoder_voltage",
    "encoder_status",
    "max_forward_velocity",
    "min_backward_velocity",
    "max_forward_position",
    "min_backward_position",
    "max_forward_current",
    "min_backward_current",
    "position_p",
    "position_i",
    "position_d",
    "velocity_p",
    "velocity_i",
    "velocity_d",
    "current_p",
    "current_i",
    "current_d",
)


def _discard(_item: object) -> None:
    return None


class JointMotorDriver:
    """Talks to one joint motor: builds command frames and tracks its replies.

    Outgoing frames go to ``send_frame``; status reports go to
    ``publish_status``. The ``*_cb`` methods are meant to be driven by
    timers and bus/topic events of the hosting application.
    """

    def __init__(
        self,
        config: DriverConfig,
        send_frame: Optional[Callable[[Frame], None]] = None,
        publish_status: Optional[Callable[[JointMotorStatus], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        config.validate()
        self._config = config
        self._send = send_frame or _discard
        self._publish = publish_status or _discard
        self._clock = clock
        self._lock = threading.RLock()

        self._heartbeat = 0
        self._is_disconnected = True
        self._last_position = 0
        self._no_rotation_times = 0
        self._initialized = False
        self._closed = False

        self.status = MotorStatus(
            position_offset=config.position_offset & _U32,
            position_p=float(config.position_p),
            position_d=float(config.position_d),
            velocity_p=float(config.velocity_p),
            velocity_i=float(config.velocity_i),
            max_forward_current=float(config.max_forward_current),
            min_backward_current=float(config.min_backward_current),
            max_forward_velocity=float(config.max_forward_velocity),
            min_backward_velocity=float(config.min_backward_velocity),
        )
        logger.info("Joint Motor Driver [CAN-ID: 0x%02X] is up.", config.can_id)

    @property
    def can_id(self) -> int:
        return self._config.can_id

    @property
    def gear_ratio(self) -> float:
        return self._config.gear_ratio

    @property
    def config(self) -> DriverConfig:
        return self._config

    @property
    def is_disconnected(self) -> bool:
        """True when no frame from the motor arrived for too many config cycles."""
        return self._is_disconnected

    @property
    def initialized(self) -> bool:
        """True once the initial configuration has been sent."""
        return self._initialized

    def __enter__(self) -> "JointMotorDriver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Halt the motor once; later calls do nothing."""
        if self._closed:
            return
        self.send_halt_cmd()
        self._closed = True

    # ---------------------------------------------------------------- frames

    def create_one_byte_frame(self, command: int) -> Frame:
        """A frame carrying only a command byte."""
        return Frame(
            can_id=self.can_id, dlc=1, data=bytes([command]), stamp=self._clock()
        )

    def create_five_bytes_frame(self, command: int, value: int) -> Frame:
        """A frame carrying a command byte followed by a 32-bit value."""
        payload = b"\x00" * 4
        if command in _VALUE_COMMANDS:
            payload = compose_bytes(value)
        elif command not in _PENDING_MODE_COMMANDS:
            logger.warning("Unhandled in five bytes CMD: 0x%02X", command)
        logger.debug("composed a value to bytes: %d", value)
        return Frame(
            can_id=self.can_id,
            dlc=5,
            data=bytes([command]) + payload,
            stamp=self._clock(),
        )

    def send_halt_cmd(self) -> None:
        self._send(self.create_one_byte_frame(MotorCommand.MOTOR_HALT))

    # --------------------------------------------------------------- timers

    def init_cb(self) -> None:
        """Halt the motor and send the configured gains, limits and offset."""
        self.send_halt_cmd()
        with self._lock:
            s = self.status
            ratio = self.gear_ratio
            settings = (
                (MotorCommand.SET_POSITION_P, int(s.position_p)),
                (MotorCommand.SET_POSITION_D, int(s.position_d)),
                (MotorCommand.SET_VELOCITY_P, int(s.velocity_p)),
                (MotorCommand.SET_VELOCITY_I, int(s.velocity_i)),
                (MotorCommand.SET_MAX_POS_CURRENT, int(s.max_forward_current)),
                (MotorCommand.SET_MIN_NEG_CURRENT, int(s.min_backward_current)),
                (
                    MotorCommand.SET_MAX_VELOCITY,
                    velocity_inverse_convention(s.max_forward_velocity, ratio),
                ),
                (
                    MotorCommand.SET_MIN_VELOCITY,
                    velocity_inverse_convention(s.min_backward_velocity, ratio),
                ),
                (MotorCommand.SET_POSITION_OFFSET, int(s.position_offset)),
            )
        for command, value in settings:
            self._send(self.create_five_bytes_frame(command, value & _U32))
        logger.info("Joint Motor Driver [CAN-ID: 0x%02X] is initialized.", self.can_id)
        self._initialized = True

    def base_status_cb(self) -> None:
        """Poll currents, velocities and positions."""
        for command in GET_STATUS_CMDS:
            self._send(self.create_one_byte_frame(command))

    def config_cb(self) -> None:
        """Poll gains, limits and configuration; update the disconnect flag."""
        for group in (GET_PID_CMDS, GET_LIMIT_CMDS, GET_CONFIGS):
            for command in group:
                self._send(self.create_one_byte_frame(command))
        with self._lock:
            self._heartbeat = (self._heartbeat + 1) & 0xFF
            self._is_disconnected = self._heartbeat > NO_CAN_FRAME_SEC

    def auto_halt_cb(self) -> None:
        """Halt a running motor whose position has stopped changing."""
        with self._lock:
            if self.status.operation_mode == MotorMode.STOP:
                return
            current = self.status.position
            diff = current - self._last_position
            logger.debug(
                "Position difference: %d | Current position: %d | Last position: %d",
                diff,
                current,
                self._last_position,
            )
            halt = False
            if abs(diff) < MOVING_THRESHOLD:
                self._no_rotation_times = (self._no_rotation_times + 1) & 0xFF
                count = self._no_rotation_times
                if count >= self._config.auto_halt_timeout:
                    halt = True
                    self._no_rotation_times = 0
            else:
                self._no_rotation_times = 0
            self._last_position = current
        if halt:
            self.send_halt_cmd()
            logger.warning(
                "Safety Halt: Motor stuck for %d cycles (threshold: %d). Forcing STOP.",
                count,
                self._config.auto_halt_timeout,
            )

    def pub_status_cb(self) -> JointMotorStatus:
        """Build, publish and return a status report."""
        msg = JointMotorStatus(
            stamp=self._clock(), can_id=self.can_id, gear_ratio=self.gear_ratio
        )
        with self._lock:
            if self._is_disconnected:
                msg.is_disconnected = True
            else:
                for name in _STATUS_COPY_FIELDS:
                    setattr(msg, name, getattr(self.status, name))
                msg.mode = self.status.operation_mode
        self._publish(msg)
        return msg

    # --------------------------------------------------------------- events

    def ctrl_cmd_handle(self, command: int, value: int) -> bool:
        """Send an arbitrary five-byte command; always reports success."""
        self._send(self.create_five_bytes_frame(command, value))
        return True

    def can_frame_cb(self, frame: Frame) -> None:
        """Take in a reply from the bus; frames for other ids are ignored."""
        if frame.can_id & 0xFF != self.can_id:
            return
        cmd = frame.command
        data = parse_bytes(frame.payload)
        with self._lock:
            self._heartbeat = 0
            s = self.status
            if cmd in _IGNORED_REPLIES:
                return
            if cmd == MotorCommand.GET_MODE:
                s.operation_mode = data & 0xFF
            elif cmd == MotorCommand.GET_POSITION:
                raw = data & _U32
                s.current_degree = position_convention(raw)
                s.position = raw
            elif cmd in _FLOAT_REPLIES:
                setattr(s, _FLOAT_REPLIES[cmd], float(data))
            elif cmd in _UNSIGNED_REPLIES:
                setattr(s, _UNSIGNED_REPLIES[cmd], data & _U32)
            elif cmd in _PID_REPLIES:
                setattr(s, _PID_REPLIES[cmd], float(data & PID_MASK))
            elif cmd in _VELOCITY_REPLIES:
                setattr(
                    s, _VELOCITY_REPLIES[cmd], velocity_convention(data, self.gear_ratio)
                )
            else:
                logger.warning("Unhandled CMD: 0x%02X", cmd)

    def halt_cb(self) -> None:
        self.send_halt_cmd()
        logger.warning("Joint Motor [CAN-ID: 0x%02X] halted", self.can_id)

    def clear_cb(self) -> None:
        self._send(self.create_one_byte_frame(MotorCommand.CLEAR_ERRORS))
        logger.warning("Joint Motor [CAN-ID: 0x%02X] clear error", self.can_id)

    def deg_rotate_cb(self, degrees: float) -> Frame:
        """Move by a relative angle in degrees; limited for safety while debugging."""
        if degrees > DEBUG_ROTATION_LIMIT or degrees < -DEBUG_ROTATION_LIMIT:
            raise ValueError(
                f"rotation of {degrees:.2f} deg exceeds +/-{DEBUG_ROTATION_LIMIT:.0f} deg"
            )
        steps = int(ENCODER_RESOLUTION * abs(degrees) / DEGREES_PER_REV) & _U32
        with self._lock:
            current = self.status.position
        if degrees > 0.0:
            target = (current + steps) & _U32
        else:
            target = (current - steps) & _U32
        frame = self.create_five_bytes_frame(MotorCommand.SET_POSITION_MODE, target)
        self._send(frame)
        logger.debug("current position: %d, steps: %d, target: %d", current, steps, target)
        logger.warning(
            "Joint Motor [CAN-ID: 0x%02X] rotated %.2f deg", self.can_id, degrees
        )
        return frame

    def init_rotate_cb(self) -> None:
        """Move to the home position."""
        self._send(
            self.create_five_bytes_frame(MotorCommand.SET_POSITION_MODE, ZERO_POSITION)
        )
        logger.warning(
            "Joint Motor [CAN-ID: 0x%02X] is rotating to home position", self.can_id
        )