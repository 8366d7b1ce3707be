import pytest

from jointmotor.commands import (
    GET_CONFIGS,
    GET_LIMIT_CMDS,
    GET_PID_CMDS,
    GET_STATUS_CMDS,
    MotorCommand,
    MotorMode,
)
from jointmotor.driver import (
    ConfigurationError,
    DriverConfig,
    JointMotorDriver,
    JointMotorStatus,
)
from jointmotor.frames import (
    Frame,
    compose_bytes,
    parse_bytes,
    position_convention,
    velocity_convention,
    velocity_inverse_convention,
)

CAN_ID = 0x11


def make_config(**overrides):
    values = dict(
        can_id=CAN_ID,
        gear_ratio=50.0,
        position_offset=1000,
        position_p=30,
        position_d=4,
        velocity_p=20,
        velocity_i=2,
        max_forward_current=1500,
        min_backward_current=-1500,
        max_forward_velocity=30.0,
        min_backward_velocity=-30.0,
        auto_halt_timeout=2,
    )
    values.update(overrides)
    return DriverConfig(**values)


@pytest.fixture
def sent():
    return []


@pytest.fixture
def published():
    return []


@pytest.fixture
def driver(sent, published):
    return JointMotorDriver(
        make_config(), send_frame=sent.append, publish_status=published.append,
        clock=lambda: 42.0,
    )


def reply(command, value, can_id=CAN_ID):
    return Frame(can_id=can_id, dlc=5, data=bytes([command]) + compose_bytes(value))


@pytest.mark.parametrize(
    "overrides",
    [
        {"can_id": 0},
        {"can_id": 0x80},
        {"gear_ratio": 0.0},
        {"max_forward_velocity": 0.0},
        {"min_backward_velocity": 0.0},
        {"min_backward_velocity": 5.0},
    ],
)
def test_invalid_config_rejected(overrides):
    with pytest.raises(ConfigurationError):
        JointMotorDriver(make_config(**overrides))


def test_halt_frame(driver, sent):
    driver.halt_cb()
    expected = driver.create_one_byte_frame(MotorCommand.MOTOR_HALT)
    assert expected.can_id == CAN_ID
    assert expected.dlc == 1
    assert expected.command == MotorCommand.MOTOR_HALT
    assert expected.stamp == 42.0
    assert sent == [expected]


def test_clear_frame(driver, sent):
    driver.clear_cb()
    assert sent == [driver.create_one_byte_frame(MotorCommand.CLEAR_ERRORS)]


def test_five_bytes_frame_value_round_trip(driver):
    frame = driver.create_five_bytes_frame(MotorCommand.SET_POSITION_P, 12345)
    assert frame.dlc == 5
    assert frame.command == MotorCommand.SET_POSITION_P
    assert parse_bytes(frame.payload) == 12345


def test_five_bytes_frame_negative_value(driver):
    frame = driver.create_five_bytes_frame(MotorCommand.SET_MIN_NEG_CURRENT, -1500)
    assert parse_bytes(frame.payload) == -1500


def test_five_bytes_frame_mode_commands_carry_no_value(driver):
    frame = driver.create_five_bytes_frame(MotorCommand.SET_VELOCITY_MODE, 777)
    assert frame.payload == b"\x00\x00\x00\x00"
    assert frame.dlc == 5


def test_five_bytes_frame_unhandled_command(driver):
    frame = driver.create_five_bytes_frame(MotorCommand.SET_CAN_ID, 777)
    assert frame.command == MotorCommand.SET_CAN_ID
    assert frame.payload == b"\x00\x00\x00\x00"


def test_init_cb_sends_configuration(driver, sent):
    config = driver.config
    driver.init_cb()
    assert driver.initialized
    assert [f.command for f in sent] == [
        MotorCommand.MOTOR_HALT,
        MotorCommand.SET_POSITION_P,
        MotorCommand.SET_POSITION_D,
        MotorCommand.SET_VELOCITY_P,
        MotorCommand.SET_VELOCITY_I,
        MotorCommand.SET_MAX_POS_CURRENT,
        MotorCommand.SET_MIN_NEG_CURRENT,
        MotorCommand.SET_MAX_VELOCITY,
        MotorCommand.SET_MIN_VELOCITY,
        MotorCommand.SET_POSITION_OFFSET,
    ]
    values = [parse_bytes(f.payload) for f in sent[1:]]
    assert values[0] == config.position_p
    assert values[3] == config.velocity_i
    assert values[5] == config.min_backward_current
    assert values[6] == velocity_inverse_convention(
        config.max_forward_velocity, config.gear_ratio
    )
    assert values[7] == velocity_inverse_convention(
        config.min_backward_velocity, config.gear_ratio
    )
    assert values[8] == config.position_offset


def test_base_status_cb_polls_status(driver, sent):
    driver.base_status_cb()
    expected = [driver.create_one_byte_frame(cmd) for cmd in GET_STATUS_CMDS]
    assert sent == expected
    assert all(f.dlc == 1 for f in expected)


def test_config_cb_polls_groups(driver, sent):
    driver.config_cb()
    expected = [
        driver.create_one_byte_frame(cmd)
        for cmd in GET_PID_CMDS + GET_LIMIT_CMDS + GET_CONFIGS
    ]
    assert sent == expected


def test_disconnect_detection(driver):
    assert driver.is_disconnected
    driver.can_frame_cb(reply(MotorCommand.GET_CURRENT, 10))
    driver.config_cb()
    assert not driver.is_disconnected
    for _ in range(5):
        driver.config_cb()
    assert driver.is_disconnected
    driver.can_frame_cb(reply(MotorCommand.GET_CURRENT, 10))
    driver.config_cb()
    assert not driver.is_disconnected


def test_frame_for_other_id_ignored(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_CURRENT, 99, can_id=CAN_ID + 1))
    assert driver.status.current == 0.0


def test_position_reply(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_POSITION, -65536))
    assert driver.status.position == (-65536) & 0xFFFFFFFF
    assert driver.status.current_degree == position_convention(driver.status.position)
    assert driver.status.current_degree < 0


def test_velocity_reply(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_VELOCITY, 5000))
    assert driver.status.velocity == velocity_convention(5000, driver.gear_ratio)


def test_pid_reply_masked(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_POSITION_P, 0xFFFF))
    assert driver.status.position_p == 0x7FF


def test_mode_and_error_replies(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_MODE, MotorMode.POSITION))
    driver.can_frame_cb(reply(MotorCommand.GET_ERROR_STATUS, 4))
    assert driver.status.operation_mode == MotorMode.POSITION
    assert driver.status.has_errors()


def test_position_offset_replies(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_POSITION_OFFSET, 321))
    assert driver.status.position_offset == 321
    driver.can_frame_cb(reply(MotorCommand.SET_POSITION_OFFSET, 654))
    assert driver.status.position_offset == 654


def test_ignored_reply_leaves_status(driver):
    before = driver.pub_status_cb()
    driver.can_frame_cb(reply(MotorCommand.SET_POSITION_P, 999))
    assert driver.status.position_p == float(driver.config.position_p)
    assert driver.pub_status_cb().position_p == before.position_p


def test_pub_status_when_disconnected(driver, published):
    msg = driver.pub_status_cb()
    assert published == [msg]
    assert msg.is_disconnected
    assert msg.can_id == CAN_ID
    assert msg.gear_ratio == driver.gear_ratio
    assert msg.position_p == 0.0


def test_pub_status_when_connected(driver, published):
    driver.can_frame_cb(reply(MotorCommand.GET_CURRENT, 250))
    driver.can_frame_cb(reply(MotorCommand.GET_MODE, MotorMode.VELOCITY))
    driver.config_cb()
    msg = driver.pub_status_cb()
    assert isinstance(msg, JointMotorStatus)
    assert not msg.is_disconnected
    assert msg.current == 250.0
    assert msg.mode == MotorMode.VELOCITY
    assert msg.position_p == float(driver.config.position_p)
    assert msg.stamp == 42.0


def test_auto_halt_inactive_when_stopped(driver, sent):
    for _ in range(5):
        driver.auto_halt_cb()
    assert driver.pub_status_cb().mode == MotorMode.STOP
    assert sent == []


def test_auto_halt_when_stuck(driver, sent):
    halt = driver.create_one_byte_frame(MotorCommand.MOTOR_HALT)
    driver.can_frame_cb(reply(MotorCommand.GET_MODE, MotorMode.POSITION))
    driver.auto_halt_cb()
    assert sent == []
    driver.auto_halt_cb()
    assert sent == [halt]
    driver.auto_halt_cb()
    assert sent == [halt]


def test_auto_halt_resets_when_moving(driver, sent):
    halt = driver.create_one_byte_frame(MotorCommand.MOTOR_HALT)
    driver.can_frame_cb(reply(MotorCommand.GET_MODE, MotorMode.POSITION))
    driver.auto_halt_cb()
    driver.can_frame_cb(reply(MotorCommand.GET_POSITION, 10000))
    driver.auto_halt_cb()
    driver.auto_halt_cb()
    assert sent == []
    driver.auto_halt_cb()
    assert sent == [halt]


def test_deg_rotate_forward(driver, sent):
    frame = driver.deg_rotate_cb(90.0)
    assert sent == [frame]
    assert frame.command == MotorCommand.SET_POSITION_MODE
    target = int.from_bytes(frame.payload, "little")
    assert position_convention(target) == pytest.approx(90.0)


def test_deg_rotate_backward_wraps(driver):
    frame = driver.deg_rotate_cb(-45.0)
    target = int.from_bytes(frame.payload, "little")
    assert target > 0x80000000
    assert position_convention(target) == pytest.approx(-45.0)


def test_deg_rotate_relative_to_position(driver):
    driver.can_frame_cb(reply(MotorCommand.GET_POSITION, 65536))
    frame = driver.deg_rotate_cb(-90.0)
    target = int.from_bytes(frame.payload, "little")
    assert position_convention(target) == pytest.approx(0.0)


@pytest.mark.parametrize("degrees", [135.5, -136.0])
def test_deg_rotate_limit(driver, sent, degrees):
    with pytest.raises(ValueError):
        driver.deg_rotate_cb(degrees)
    assert sent == []


def test_init_rotate(driver, sent):
    driver.init_rotate_cb()
    assert sent[0].command == MotorCommand.SET_POSITION_MODE
    assert parse_bytes(sent[0].payload) == 0


def test_ctrl_cmd_handle(driver, sent):
    assert driver.ctrl_cmd_handle(MotorCommand.SET_VELOCITY_P, 77) is True
    assert sent[0].command == MotorCommand.SET_VELOCITY_P
    assert parse_bytes(sent[0].payload) == 77


def test_close_halts_once(sent):
    with JointMotorDriver(make_config(), send_frame=sent.append) as drv:
        assert sent == []
    assert [f.command for f in sent] == [MotorCommand.MOTOR_HALT]
    drv.close()
    assert len(sent) == 1