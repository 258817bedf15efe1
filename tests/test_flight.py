import dataclasses
import math

import pytest

from autogyro.config.flight import (
    PID_POSITION,
    LogMask,
    MessagePriority,
    PidGains,
    deg_to_rad,
    kmh_to_ms,
    ms_to_kmh,
    rad_to_deg,
)


def test_deg_to_rad_half_turn_is_pi():
    assert deg_to_rad(180.0) == pytest.approx(math.pi)


def test_rad_to_deg_pi_is_half_turn():
    assert rad_to_deg(math.pi) == pytest.approx(180.0)


@pytest.mark.parametrize("value", [-90.0, 0.0, 12.5, 45.0, 720.0])
def test_angle_round_trip(value):
    assert rad_to_deg(deg_to_rad(value)) == pytest.approx(value)


@pytest.mark.parametrize("value", [0.0, 1.0, 15.0, 33.3])
def test_speed_round_trip(value):
    assert kmh_to_ms(ms_to_kmh(value)) == pytest.approx(value)


def test_speed_factor_is_three_point_six():
    assert ms_to_kmh(1.0) == pytest.approx(3.6)
    assert kmh_to_ms(3.6) == pytest.approx(1.0)


def test_pid_gains_are_frozen():
    gains = PidGains(kp=4.5, ki=0.02, kd=0.15, i_limit=10.0, output_limit=1.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        gains.kp = 1.0
    assert gains.kp == 4.5


def test_pid_gains_equality_by_value():
    copy = PidGains(kp=0.8, ki=0.01, kd=0.2, i_limit=5.0, output_limit=15.0)
    assert copy == PID_POSITION


def test_message_priority_lookup_and_order():
    assert MessagePriority(0) is MessagePriority.CRITICAL
    assert MessagePriority(3) is MessagePriority.LOW
    assert sorted(MessagePriority) == [
        MessagePriority.CRITICAL,
        MessagePriority.HIGH,
        MessagePriority.NORMAL,
        MessagePriority.LOW,
    ]


def test_log_mask_bits_are_distinct():
    singles = [LogMask(1 << bit) for bit in range(6)]
    assert singles == [
        LogMask.ATTITUDE,
        LogMask.ALTITUDE,
        LogMask.GPS,
        LogMask.MOTORS,
        LogMask.PID,
        LogMask.SYSTEM,
    ]
    combined = LogMask(0)
    for flag in singles:
        assert combined & flag == 0
        combined |= flag
    assert int(combined) == 0b111111


def test_log_mask_all_contains_every_flag():
    everything = LogMask(0xFFFFFFFF)
    assert everything == LogMask.ALL
    for flag in (LogMask.ATTITUDE, LogMask.GPS, LogMask.SYSTEM):
        assert everything & flag == flag


def test_log_mask_combination_membership():
    mask = LogMask(0b10100)
    assert mask == LogMask.GPS | LogMask.PID
    assert mask & LogMask.GPS
    assert not mask & LogMask.MOTORS