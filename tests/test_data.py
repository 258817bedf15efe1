import asyncio
import dataclasses

import pytest

from autogyro.data import (
    AltitudeData,
    ControlCommand,
    DataChannels,
    FlightMode,
    GpsData,
    ImuData,
    SystemState,
)


def _imu():
    return ImuData(0.1, -0.05, 1.0, 0.0, 0.0, 0.0, timestamp_us=1000)


def _altitude():
    return AltitudeData(12.0, 0.5, 101000.0, 20.0, timestamp_us=2000)


def _gps():
    return GpsData(55.0, 37.0, 150.0, 3.0, 90.0, 8, 1.2, timestamp_us=3000)


def test_new_state_is_disarmed():
    state = SystemState()
    assert state.armed is False
    assert state.flight_mode is FlightMode.DISARMED
    assert state.last_imu is None


@pytest.mark.asyncio
async def test_not_ready_without_data():
    state = SystemState()
    assert await state.is_ready_for_flight() is False


@pytest.mark.asyncio
async def test_not_ready_with_imu_only():
    state = SystemState()
    async with state.lock:
        state.last_imu = _imu()
    assert await state.is_ready_for_flight() is False


@pytest.mark.asyncio
async def test_ready_with_imu_and_altitude_without_gps():
    state = SystemState()
    async with state.lock:
        state.last_imu = _imu()
        state.last_altitude = _altitude()
    assert state.last_gps is None
    assert await state.is_ready_for_flight() is True


@pytest.mark.asyncio
async def test_control_channel_capacity():
    channels = DataChannels()
    cmd = ControlCommand(48, 48, 0.0, 0.0)
    count = 0
    while not channels.control_channel.full():
        channels.control_channel.put_nowait(cmd)
        count += 1
    assert count == 5
    with pytest.raises(asyncio.QueueFull):
        channels.control_channel.put_nowait(cmd)


@pytest.mark.asyncio
async def test_sensor_channel_capacity_and_order():
    channels = DataChannels()
    for ts in range(10):
        channels.gps_channel.put_nowait(dataclasses.replace(_gps(), timestamp_us=ts))
    assert channels.gps_channel.full()
    first = await channels.gps_channel.get()
    assert first.timestamp_us == 0


def test_records_are_immutable():
    cmd = ControlCommand(100, 200, 0.5, -0.5)
    with pytest.raises(dataclasses.FrozenInstanceError):
        cmd.throttle_left = 300
    changed = dataclasses.replace(cmd, cyclic_roll=0.25)
    assert changed.cyclic_roll == 0.25
    assert changed.throttle_right == cmd.throttle_right


def test_flight_modes_are_distinct():
    state = SystemState()
    assert len(set(FlightMode)) == 5
    assert state.flight_mode in set(FlightMode)
    assert FlightMode[state.flight_mode.name] is FlightMode.DISARMED
    state.flight_mode = FlightMode["EMERGENCY"]
    assert state.flight_mode is FlightMode.EMERGENCY