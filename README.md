# jointmotor

Driver logic for a CAN-controlled joint motor. The package builds the
command frames that the motor controller expects. It decodes the
controller's replies into a status record. It also watches for a running
motor whose position has stopped changing and halts it.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `jointmotor.commands`
  - `MotorCommand` holds the controller's one-byte command codes.
  - `MotorMode` holds the operating modes: `STOP`, `CURRENT`, `VELOCITY`
    and `POSITION`.
  - `GET_STATUS_CMDS`, `GET_PID_CMDS`, `GET_LIMIT_CMDS` and `GET_CONFIGS`
    are the groups of query commands that the driver polls.
- `jointmotor.status`
  - `MotorStatus` is a dataclass with the decoded motor state.
  - `has_errors()` is true when `error_status` is non-zero.
  - `reset()` sets every field back to zero.
- `jointmotor.frames`
  - `Frame` is an immutable CAN frame with `can_id`, `dlc`, `data` and
    `stamp`. `data` is always padded to eight bytes. `command` gives the
    first data byte and `payload` gives the four bytes after it.
  - `parse_bytes` reads a signed 32-bit little-endian value.
  - `compose_bytes` writes a 32-bit value as four little-endian bytes.
  - `velocity_convention` and `velocity_inverse_convention` convert between
    the raw controller velocity and degrees per second at the joint. Both
    take a gear ratio and raise `ValueError` when it is zero.
  - `position_convention` converts a raw 32-bit encoder position to degrees.
    It reads the position as a signed value, at 262144 counts per
    revolution.
- `jointmotor.driver`
  - `DriverConfig` holds the motor's parameters.
  - `JointMotorDriver` is the driver itself.
  - `JointMotorStatus` is the status report that the driver publishes.
  - `ConfigurationError` is raised when the configuration is unusable. It
    is a subclass of `ValueError`.

## Using the driver

```python
from jointmotor.driver import DriverConfig, JointMotorDriver

sent = []
reports = []

config = DriverConfig(
    can_id=0x01,
    gear_ratio=50.0,
    max_forward_velocity=30.0,
    min_backward_velocity=-30.0,
    auto_halt_timeout=5,
)

with JointMotorDriver(config, send_frame=sent.append,
                      publish_status=reports.append) as driver:
    driver.init_cb()          # halt, then send the PID gains, limits and offset
    driver.base_status_cb()   # poll current, velocity and position
    driver.config_cb()        # poll PID gains, limits and configuration

    driver.can_frame_cb(frame_from_bus)  # decode a reply from the bus
    status = driver.pub_status_cb()      # build, publish and return a report

    driver.deg_rotate_cb(15.0)  # rotate 15 degrees from the present position
    driver.init_rotate_cb()     # go back to position zero
    driver.halt_cb()            # stop at once
    driver.clear_cb()           # clear the controller's errors
# leaving the block calls close(), which sends a final halt once
```

### Callbacks and clock

Every outgoing `Frame` goes to `send_frame`, and each frame is addressed to
the configured CAN ID. Every `JointMotorStatus` goes to `publish_status`.
When a callback is left out, its items are dropped. The `clock` argument
gives each frame's and each report's `stamp`. It defaults to `time.time`.

The decoded state is available as `driver.status`, which is a
`MotorStatus`. `driver.initialized` becomes true once `init_cb()` has run.

### Raw commands

`ctrl_cmd_handle(command, value)` sends any command as a five-byte frame
and returns `True`. The value is encoded into the frame only for these
commands: position mode, the velocity and current limits, the position and
velocity gains, and the position offset. Any other command goes out with a
zero payload.

### Incoming frames

`can_frame_cb` ignores frames addressed to another CAN ID. Every frame for
this motor resets the heartbeat.

### Disconnect detection

Each call to `config_cb()` advances the heartbeat counter. Once the counter
goes past 5 without a frame arriving, the motor counts as disconnected. A
newly built driver starts out disconnected. It stays that way until
`config_cb()` runs after a frame has been received. While the motor is
disconnected, `pub_status_cb()` reports only `can_id`, `gear_ratio` and
`is_disconnected=True`.

### Safety halt

Call `auto_halt_cb()` at a regular interval, for example once a second.
When the motor is not in `STOP` mode and its position has moved fewer than
16 encoder steps for `auto_halt_timeout` consecutive calls, the driver
sends a halt command and resets its count.

### Rotation limit

`deg_rotate_cb` raises `ValueError` for a rotation beyond ±135 degrees.

### Configuration errors

`JointMotorDriver` raises `ConfigurationError` in these cases:

- the CAN ID is not in the range 1 to `0x7F`;
- the gear ratio is zero;
- the forward velocity limit is not positive;
- the backward velocity limit is not negative.

## What the package does not do

The package has no CAN transport, no timers and no command-line program.
You supply the bus I/O through `send_frame` and `can_frame_cb`. Your own
application calls the `*_cb` methods at whatever rates it chooses.