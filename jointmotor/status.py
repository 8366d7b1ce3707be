"""Last known state of a joint motor as reported over the bus."""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass
class MotorStatus:
    """Snapshot of the controller's reported values and limits."""

    operation_mode: int = 0

    current_degree: float = 0.0

    current: float = 0.0
    target_current: float = 0.0
    velocity: float = 0.0
    target_velocity: float = 0.0
    position: int = 0
    target_position: int = 0

    position_offset: int = 0

    error_status: int = 0

    position_p: float = 0.0
    position_i: float = 0.0
    position_d: float = 0.0
    velocity_p: float = 0.0
    velocity_i: float = 0.0
    velocity_d: float = 0.0
    current_p: float = 0.0
    current_i: float = 0.0
    current_d: float = 0.0

    bus_voltage: float = 0.0
    encoder_voltage: float = 0.0
    encoder_status: float = 0.0
    motor_temp: float = 0.0
    board_temp: float = 0.0

    max_current_abs: float = 0.0
    max_forward_current: float = 0.0
    min_backward_current: float = 0.0

    max_forward_accel: float = 0.0
    min_backward_accel: float = 0.0

    max_forward_velocity: float = 0.0
    min_backward_velocity: float = 0.0

    max_forward_position: int = 0
    min_backward_position: int = 0

    def has_errors(self) -> bool:
        """True when the controller reports a non-zero error status."""
        return self.error_status != 0

    def reset(self) -> None:
        """Set every value back to zero."""
        for f in fields(self):
            setattr(self, f.name, f.default)