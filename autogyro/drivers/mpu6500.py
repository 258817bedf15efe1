"""Driver for the MPU6500 six-axis accelerometer and gyroscope (no magnetometer)."""

from __future__ import annotations

import logging
import math
import struct
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterator, Tuple

from autogyro.drivers.i2c import I2CBus, I2CError, RegisterDevice
from autogyro.drivers.mpu6050 import (
    ACCEL_LSB_PER_G,
    DEG_TO_RAD,
    GYRO_LSB_PER_DPS,
    STANDARD_GRAVITY,
    AccelRange,
    GyroRange,
)

log = logging.getLogger(__name__)

MPU6500_ADDR = 0x68

REG_PWR_MGMT_1 = 0x6B
REG_PWR_MGMT_2 = 0x6C
REG_CONFIG = 0x1A
REG_GYRO_CONFIG = 0x1B
REG_ACCEL_CONFIG = 0x1C
REG_ACCEL_CONFIG_2 = 0x1D
REG_SMPLRT_DIV = 0x19
REG_INT_PIN_CFG = 0x37
REG_INT_ENABLE = 0x38
REG_INT_STATUS = 0x3A
REG_WHO_AM_I = 0x75
REG_SIGNAL_PATH_RESET = 0x68
REG_USER_CTRL = 0x6A
REG_FIFO_EN = 0x23
REG_ACCEL_XOUT_H = 0x3B

KNOWN_IDS = frozenset({0x70, 0x71, 0x73, 0x68})
SELF_TEST_CONFIG = 0xE0
SELF_TEST_THRESHOLD = 500

_RAW_FORMAT = ">7h"

Vector = Tuple[float, float, float]


class DlpfBandwidth(IntEnum):
    """Digital low-pass filter setting (accelerometer / gyroscope bandwidth)."""

    BW260HZ = 0
    BW184HZ = 1
    BW94HZ = 2
    BW44HZ = 3
    BW21HZ = 4
    BW10HZ = 5
    BW5HZ = 6


class Mpu6500Error(Exception):
    """The MPU6500 could not be reached or configured."""


@contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except I2CError as exc:
        raise Mpu6500Error(f"MPU6500: I2C error: {exc}") from exc


@dataclass(frozen=True)
class Mpu6500Raw:
    """Raw sensor counts."""

    accel_x: int
    accel_y: int
    accel_z: int
    gyro_x: int
    gyro_y: int
    gyro_z: int
    temp: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "Mpu6500Raw":
        """Decode the 14 big-endian bytes starting at ACCEL_XOUT_H."""
        if len(data) != struct.calcsize(_RAW_FORMAT):
            raise ValueError(f"expected 14 data bytes, got {len(data)}")
        ax, ay, az, temp, gx, gy, gz = struct.unpack(_RAW_FORMAT, bytes(data))
        return cls(
            accel_x=ax,
            accel_y=ay,
            accel_z=az,
            gyro_x=gx,
            gyro_y=gy,
            gyro_z=gz,
            temp=temp,
        )


@dataclass(frozen=True)
class Mpu6500Data:
    """Acceleration in m/s², rate in rad/s, temperature in °C, tilt angles in rad."""

    accel_x: float
    accel_y: float
    accel_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    temperature: float
    roll: float
    pitch: float


class Mpu6500:
    """MPU6500 sensor; the device is configured on construction."""

    def __init__(
        self,
        bus: I2CBus,
        addr: int = MPU6500_ADDR,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._device = RegisterDevice(bus, addr)
        self._sleep = sleep
        self.accel_range = AccelRange.G2
        self.gyro_range = GyroRange.DEG250
        self.accel_scale = ACCEL_LSB_PER_G[AccelRange.G2]
        self.gyro_scale = GYRO_LSB_PER_DPS[GyroRange.DEG250]
        self.gyro_offset: Vector = (0.0, 0.0, 0.0)
        self.accel_offset: Vector = (0.0, 0.0, 0.0)
        self._init()

    def _write(self, reg: int, value: int) -> None:
        with _bus_errors():
            self._device.write_register(reg, value)

    def _read(self, reg: int) -> int:
        with _bus_errors():
            return self._device.read_register(reg)

    def _init(self) -> None:
        who_am_i = self._read(REG_WHO_AM_I)
        if who_am_i not in KNOWN_IDS:
            log.warning("unexpected MPU6500 id: 0x%02x, continuing", who_am_i)
        log.info("MPU6500 WHO_AM_I: 0x%02x", who_am_i)

        self._write(REG_PWR_MGMT_1, 0x80)
        self._sleep(0.1)

        self._write(REG_SIGNAL_PATH_RESET, 0x07)
        self._sleep(0.1)

        # PLL with the X gyroscope as clock source.
        self._write(REG_PWR_MGMT_1, 0x01)
        self._sleep(0.01)

        self._write(REG_PWR_MGMT_2, 0x00)
        self._write(REG_CONFIG, DlpfBandwidth.BW44HZ)
        # 1 kHz / (1 + 9) = 100 Hz sampling.
        self._write(REG_SMPLRT_DIV, 9)

        self.set_gyro_range(GyroRange.DEG250)
        self.set_accel_range(AccelRange.G2)

        self._write(REG_ACCEL_CONFIG_2, 0x03)
        self._write(REG_FIFO_EN, 0x00)
        self._write(REG_INT_PIN_CFG, 0x10)  # latch interrupt
        self._write(REG_INT_ENABLE, 0x01)  # data ready

        self._sleep(0.05)
        log.info("MPU6500 initialised")

    def set_accel_range(self, accel_range: AccelRange) -> None:
        """Select the accelerometer range and update the scale factor."""
        accel_range = AccelRange(accel_range)
        self._write(REG_ACCEL_CONFIG, accel_range)
        self.accel_range = accel_range
        self.accel_scale = ACCEL_LSB_PER_G[accel_range]
        log.info("accelerometer range set: 0x%02x", accel_range)

    def set_gyro_range(self, gyro_range: GyroRange) -> None:
        """Select the gyroscope range and update the scale factor."""
        gyro_range = GyroRange(gyro_range)
        self._write(REG_GYRO_CONFIG, gyro_range)
        self.gyro_range = gyro_range
        self.gyro_scale = GYRO_LSB_PER_DPS[gyro_range]
        log.info("gyroscope range set: 0x%02x", gyro_range)

    def read_raw(self) -> Mpu6500Raw:
        """Read raw counts of all sensors in one transfer."""
        with _bus_errors():
            buf = self._device.read_registers(REG_ACCEL_XOUT_H, 14)
        return Mpu6500Raw.from_bytes(buf)

    def read_all(self) -> Mpu6500Data:
        """Read all sensors, apply calibration and derive roll and pitch."""
        raw = self.read_raw()
        a_scale = self.accel_scale
        g_scale = self.gyro_scale
        aox, aoy, aoz = self.accel_offset
        gox, goy, goz = self.gyro_offset

        accel_x = (raw.accel_x / a_scale - aox) * STANDARD_GRAVITY
        accel_y = (raw.accel_y / a_scale - aoy) * STANDARD_GRAVITY
        accel_z = (raw.accel_z / a_scale - aoz) * STANDARD_GRAVITY

        gyro_x = raw.gyro_x / g_scale * DEG_TO_RAD - gox
        gyro_y = raw.gyro_y / g_scale * DEG_TO_RAD - goy
        gyro_z = raw.gyro_z / g_scale * DEG_TO_RAD - goz

        return Mpu6500Data(
            accel_x=accel_x,
            accel_y=accel_y,
            accel_z=accel_z,
            gyro_x=gyro_x,
            gyro_y=gyro_y,
            gyro_z=gyro_z,
            temperature=raw.temp / 333.87 + 21.0,
            roll=math.atan2(accel_y, accel_z),
            pitch=math.atan2(-accel_x, math.sqrt(accel_y**2 + accel_z**2)),
        )

    def calibrate_gyro(self, samples: int) -> Vector:
        """Average ``samples`` gyro readings, store and return the offsets in rad/s."""
        log.info("gyro calibration started, %d samples; keep the device still", samples)
        sums = [0.0, 0.0, 0.0]
        for i in range(samples):
            raw = self.read_raw()
            for axis, value in enumerate((raw.gyro_x, raw.gyro_y, raw.gyro_z)):
                sums[axis] += value / self.gyro_scale * DEG_TO_RAD
            if i % 10 == 0:
                log.info("calibration: %d/%d", i, samples)
            self._sleep(0.01)

        self.gyro_offset = _averages(sums, samples)
        log.info("gyro offsets: X=%f Y=%f Z=%f rad/s", *self.gyro_offset)
        return self.gyro_offset

    def calibrate_accel(self, samples: int) -> Vector:
        """Average level readings; store and return offsets in g (Z expects 1 g)."""
        log.info("accelerometer calibration started; keep the device level")
        sums = [0.0, 0.0, 0.0]
        for _ in range(samples):
            raw = self.read_raw()
            for axis, value in enumerate((raw.accel_x, raw.accel_y, raw.accel_z)):
                sums[axis] += value / self.accel_scale
            self._sleep(0.01)

        avg_x, avg_y, avg_z = _averages(sums, samples)
        self.accel_offset = (avg_x, avg_y, avg_z - 1.0)
        log.info("accelerometer calibration finished")
        return self.accel_offset

    def data_ready(self) -> bool:
        """True if a new sample is available."""
        return bool(self._read(REG_INT_STATUS) & 0x01)

    def self_test(self) -> bool:
        """Compare accelerometer readings with self-test on and off."""
        log.info("MPU6500 self-test started")
        orig_gyro = self._read(REG_GYRO_CONFIG)
        orig_accel = self._read(REG_ACCEL_CONFIG)

        self._write(REG_GYRO_CONFIG, SELF_TEST_CONFIG)
        self._write(REG_ACCEL_CONFIG, SELF_TEST_CONFIG)
        self._sleep(0.1)
        raw_st = self.read_raw()

        self._write(REG_GYRO_CONFIG, orig_gyro)
        self._write(REG_ACCEL_CONFIG, orig_accel)
        self._sleep(0.1)
        raw_normal = self.read_raw()

        diffs = (
            abs(raw_st.accel_x - raw_normal.accel_x),
            abs(raw_st.accel_y - raw_normal.accel_y),
            abs(raw_st.accel_z - raw_normal.accel_z),
        )
        log.info("self-test difference: X=%d Y=%d Z=%d", *diffs)

        passed = all(diff > SELF_TEST_THRESHOLD for diff in diffs)
        if passed:
            log.info("self-test passed")
        else:
            log.warning("self-test failed")
        return passed


def _averages(sums: list, samples: int) -> Vector:
    if samples <= 0:
        return (math.nan, math.nan, math.nan)
    return (sums[0] / samples, sums[1] / samples, sums[2] / samples)