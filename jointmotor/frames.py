"""CAN frames and the byte and unit conventions of the joint motor protocol."""

from __future__ import annotations

from dataclasses import dataclass

ENCODER_RESOLUTION = 262144.0  # 18-bit encoder
VELOCITY_SCALE = 100.0
DEGREES_PER_REV = 360.0

FRAME_DATA_LEN = 8
_MAX_EXTENDED_ID = 0x1FFFFFFF


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


@dataclass(frozen=True)
class Frame:
    """A classic CAN frame; data is always held as eight bytes."""

    can_id: int
    dlc: int
    data: bytes = b""
    stamp: float = 0.0

    def __post_init__(self) -> None:
        if not 0 <= self.can_id <= _MAX_EXTENDED_ID:
            raise ValueError(f"CAN id out of range: {self.can_id:#x}")
        if not 0 <= self.dlc <= FRAME_DATA_LEN:
            raise ValueError(f"DLC out of range: {self.dlc}")
        raw = bytes(self.data)
        if len(raw) > FRAME_DATA_LEN:
            raise ValueError(f"frame data longer than {FRAME_DATA_LEN} bytes")
        object.__setattr__(self, "data", raw.ljust(FRAME_DATA_LEN, b"\x00"))

    @property
    def command(self) -> int:
        """The command byte (first data byte)."""
        return self.data[0]

    @property
    def payload(self) -> bytes:
        """The four value bytes following the command byte."""
        return self.data[1:5]


def parse_bytes(data: bytes) -> int:
    """Read a little-endian signed 32-bit value from the first four bytes."""
    raw = bytes(data)
    if len(raw) < 4:
        raise ValueError("need at least four bytes to parse a value")
    return int.from_bytes(raw[:4], "little", signed=True)


def compose_bytes(value: int) -> bytes:
    """Encode a 32-bit value (signed or unsigned) as four little-endian bytes."""
    return (int(value) & 0xFFFFFFFF).to_bytes(4, "little")


def _check_gear_ratio(gear_ratio: float) -> None:
    if gear_ratio == 0:
        raise ValueError("gear ratio must be non-zero")


def velocity_convention(value: int, gear_ratio: float) -> float:
    """Convert a raw controller velocity to degrees per second at the joint."""
    _check_gear_ratio(gear_ratio)
    return float(value) / VELOCITY_SCALE / gear_ratio * DEGREES_PER_REV


def velocity_inverse_convention(value: float, gear_ratio: float) -> int:
    """Convert a joint velocity in degrees per second to the raw controller unit."""
    _check_gear_ratio(gear_ratio)
    return _to_int32(int((value * gear_ratio * VELOCITY_SCALE) / DEGREES_PER_REV))


def position_convention(value: int) -> float:
    """Convert a raw 32-bit encoder position to degrees."""
    return _to_int32(value) / ENCODER_RESOLUTION * DEGREES_PER_REV