import math
import struct

import pytest

from autogyro.drivers.i2c import I2CError
from autogyro.drivers.mpu6050 import AccelRange, GyroRange
from autogyro.drivers.mpu6500 import (
    DlpfBandwidth,
    Mpu6500,
    Mpu6500Error,
    Mpu6500Raw,
)


class FakeBus:
    def __init__(self, who_am_i=0x70):
        self.regs = bytearray(256)
        self.regs[0x75] = who_am_i
        self.writes = []
        self.self_test_data = None

    def write(self, addr, data):
        reg, value = data[0], data[1]
        self.writes.append((reg, value))
        self.regs[reg] = value

    def write_read(self, addr, data, length):
        start = data[0]
        if (
            start == 0x3B
            and self.self_test_data is not None
            and self.regs[0x1B] == 0xE0
        ):
            return self.self_test_data
        return bytes(self.regs[start:start + length])

    def set_raw(self, ax=0, ay=0, az=0, temp=0, gx=0, gy=0, gz=0):
        self.regs[0x3B:0x49] = struct.pack(">7h", ax, ay, az, temp, gx, gy, gz)


class FailingBus:
    def write(self, addr, data):
        raise I2CError("nack")

    def write_read(self, addr, data, length):
        raise I2CError("nack")


def make(bus=None):
    bus = bus or FakeBus()
    sleeps = []
    return Mpu6500(bus, sleep=sleeps.append), bus, sleeps


def test_scale_factors():
    mpu, bus, _ = make()
    assert AccelRange.G2 == 0x00
    assert GyroRange.DEG250 == 0x00
    assert (0x1C, 0x00) in bus.writes
    assert (0x1B, 0x00) in bus.writes
    assert mpu.accel_scale == 16384.0
    assert mpu.gyro_scale == 131.0


def test_init_configuration_sequence():
    mpu, bus, sleeps = make()
    assert bus.writes[:3] == [(0x6B, 0x80), (0x68, 0x07), (0x6B, 0x01)]
    assert (0x1A, DlpfBandwidth.BW44HZ) in bus.writes
    assert (0x19, 9) in bus.writes
    assert bus.writes[-2:] == [(0x37, 0x10), (0x38, 0x01)]
    assert sleeps == [0.1, 0.1, 0.01, 0.05]


def test_unknown_id_continues():
    mpu, bus, _ = make(FakeBus(who_am_i=0x12))
    assert (0x38, 0x01) in bus.writes
    assert mpu.gyro_offset == (0.0, 0.0, 0.0)


def test_bus_failure_raises():
    with pytest.raises(Mpu6500Error):
        Mpu6500(FailingBus(), sleep=lambda s: None)


def test_raw_from_bytes_order():
    raw = Mpu6500Raw.from_bytes(struct.pack(">7h", 1, -2, 3, 4, 5, -6, 7))
    assert raw == Mpu6500Raw(
        accel_x=1, accel_y=-2, accel_z=3, gyro_x=5, gyro_y=-6, gyro_z=7, temp=4
    )


def test_raw_from_bytes_wrong_length():
    with pytest.raises(ValueError):
        Mpu6500Raw.from_bytes(b"\x00" * 13)


def test_read_all_level():
    mpu, bus, _ = make()
    bus.set_raw(az=16384, gx=131, gy=-131, gz=262, temp=0)
    data = mpu.read_all()
    assert data.accel_z == pytest.approx(9.81)
    assert data.accel_x == 0.0
    assert data.gyro_x == pytest.approx(math.pi / 180)
    assert data.gyro_y == pytest.approx(-math.pi / 180)
    assert data.gyro_z == pytest.approx(2 * math.pi / 180)
    assert data.temperature == pytest.approx(21.0)
    assert data.roll == pytest.approx(0.0)
    assert data.pitch == pytest.approx(0.0)


def test_read_all_tilted_roll():
    mpu, bus, _ = make()
    bus.set_raw(ay=16384, az=16384)
    data = mpu.read_all()
    assert data.roll == pytest.approx(math.pi / 4)


def test_set_ranges_update_scale():
    mpu, bus, _ = make()
    mpu.set_accel_range(AccelRange.G8)
    mpu.set_gyro_range(GyroRange.DEG2000)
    assert bus.regs[0x1C] == 0x10
    assert bus.regs[0x1B] == 0x18
    assert mpu.accel_scale == 4096.0
    assert mpu.gyro_scale == 16.4


def test_calibrate_gyro_removes_offset():
    mpu, bus, sleeps = make()
    bus.set_raw(az=16384, gx=131, gy=131, gz=131)
    offsets = mpu.calibrate_gyro(4)
    for value in offsets:
        assert value == pytest.approx(math.pi / 180)
    data = mpu.read_all()
    assert data.gyro_x == pytest.approx(0.0, abs=1e-12)
    assert sleeps[-4:] == [0.01] * 4


def test_calibrate_accel():
    mpu, bus, _ = make()
    bus.set_raw(az=8192)
    offsets = mpu.calibrate_accel(3)
    assert offsets == pytest.approx((0.0, 0.0, -0.5))
    assert mpu.read_all().accel_z == pytest.approx(9.81)


def test_data_ready():
    mpu, bus, _ = make()
    bus.regs[0x3A] = 0x00
    assert mpu.data_ready() is False
    bus.regs[0x3A] = 0x01
    assert mpu.data_ready() is True


def test_self_test_passes_and_restores_config():
    mpu, bus, _ = make()
    bus.set_raw(ax=100, ay=100, az=16384)
    bus.self_test_data = struct.pack(">7h", 1000, 1000, 17000, 0, 0, 0, 0)
    assert mpu.self_test() is True
    assert bus.regs[0x1B] == 0x00
    assert bus.regs[0x1C] == 0x00


def test_self_test_fails_with_small_difference():
    mpu, bus, _ = make()
    bus.set_raw(ax=100, ay=100, az=16384)
    bus.self_test_data = struct.pack(">7h", 700, 700, 16500, 0, 0, 0, 0)
    assert mpu.self_test() is False