"""Driver for the MPU9250: an MPU6500 with an AK8963 magnetometer behind a bypass."""

from __future__ import annotations

import logging
import math
import struct
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterator, Tuple

from autogyro.config.hardware import AK8963_ADDR, MPU9250_ADDR
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

REG_PWR_MGMT_1 = 0x6B
REG_PWR_MGMT_2 = 0x6C
REG_CONFIG = 0x1A
REG_GYRO_CONFIG = 0x1B
REG_ACCEL_CONFIG = 0x1C
REG_ACCEL_CONFIG_2 = 0x1D
REG_SMPLRT_DIV = 0x19
REG_INT_ENABLE = 0x38
REG_INT_PIN_CFG = 0x37
REG_WHO_AM_I = 0x75
REG_USER_CTRL = 0x6A
REG_ACCEL_XOUT_H = 0x3B
REG_TEMP_OUT_H = 0x41
REG_GYRO_XOUT_H = 0x43

# AK8963 registers
MAG_WIA = 0x00
MAG_INFO = 0x01
MAG_ST1 = 0x02
MAG_HXL = 0x03
MAG_ST2 = 0x09
MAG_CNTL1 = 0x0A
MAG_CNTL2 = 0x0B
MAG_ASTC = 0x0C
MAG_ASAX = 0x10
MAG_ASAY = 0x11
MAG_ASAZ = 0x12

VALID_IDS = frozenset({0x71, 0x73})
MAG_ID = 0x48
MAG_CONTINUOUS_100HZ_16BIT = 0x16
MAG_UT_PER_LSB = 0.15

_RAW_FORMAT = ">7h"
_MAG_FORMAT = "<3h"

Vector = Tuple[float, float, float]


class MagMode(IntEnum):
    """AK8963 operating mode."""

    POWER_DOWN = 0x00
    SINGLE_MEASUREMENT = 0x01
    CONTINUOUS_8HZ = 0x02
    CONTINUOUS_100HZ = 0x06
    FUSE_ROM = 0x0F


class Mpu9250Error(Exception):
    """The MPU9250 or its magnetometer failed, was not identified, or overflowed."""


@contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except I2CError as exc:
        raise Mpu9250Error(f"MPU9250: I2C error: {exc}") from exc


@dataclass(frozen=True)
class Mpu9250Data:
    """Readings of all sensors: m/s², rad/s, µT, °C and orientation in rad."""

    accel_x: float
    accel_y: float
    accel_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    mag_x: float
    mag_y: float
    mag_z: float
    temperature: float
    roll: float
    pitch: float
    yaw: float


class Mpu9250:
    """MPU9250 sensor; both chips are checked and configured on construction."""

    def __init__(
        self,
        bus: I2CBus,
        addr: int = MPU9250_ADDR,
        mag_addr: int = AK8963_ADDR,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._device = RegisterDevice(bus, addr)
        self._mag = RegisterDevice(bus, mag_addr)
        self._sleep = sleep
        self._clock = clock
        self.accel_scale = ACCEL_LSB_PER_G[AccelRange.G2]
        self.gyro_scale = GYRO_LSB_PER_DPS[GyroRange.DEG250]
        self.mag_sensitivity: Vector = (1.0, 1.0, 1.0)
        self.mag_offset: Vector = (0.0, 0.0, 0.0)
        self.gyro_offset: Vector = (0.0, 0.0, 0.0)
        self._init()

    def _init(self) -> None:
        with _bus_errors():
            who_am_i = self._device.read_register(REG_WHO_AM_I)
            if who_am_i not in VALID_IDS:
                log.error("unexpected MPU9250 id: 0x%02x", who_am_i)
                raise Mpu9250Error(f"MPU9250: invalid device id 0x{who_am_i:02x}")

            self._device.write_register(REG_PWR_MGMT_1, 0x80)
            self._sleep(0.1)

            self._device.write_register(REG_PWR_MGMT_1, 0x01)
            self._sleep(0.05)

            self._device.write_register(REG_PWR_MGMT_2, 0x00)
            # DLPF 41 Hz gyro / 42 Hz accel; 100 Hz sampling.
            self._device.write_register(REG_CONFIG, 0x03)
            self._device.write_register(REG_SMPLRT_DIV, 9)

        self.set_accel_range(AccelRange.G2)
        with _bus_errors():
            self._device.write_register(REG_ACCEL_CONFIG_2, 0x03)

        self.set_gyro_range(GyroRange.DEG250)

        with _bus_errors():
            # Bypass mode makes the magnetometer visible on the bus.
            self._device.write_register(REG_INT_PIN_CFG, 0x02)
        self._sleep(0.01)

        self._init_magnetometer()
        log.info("MPU9250 initialised")

    def _init_magnetometer(self) -> None:
        with _bus_errors():
            mag_id = self._mag.read_register(MAG_WIA)
            if mag_id != MAG_ID:
                log.error("unexpected AK8963 id: 0x%02x", mag_id)
                raise Mpu9250Error(f"MPU9250: invalid magnetometer id 0x{mag_id:02x}")

            self._mag.write_register(MAG_CNTL2, 0x01)
            self._sleep(0.01)

            self._mag.write_register(MAG_CNTL1, MagMode.FUSE_ROM)
            self._sleep(0.01)

            asa = [self._mag.read_register(reg) for reg in (MAG_ASAX, MAG_ASAY, MAG_ASAZ)]
            self.mag_sensitivity = tuple(  # type: ignore[assignment]
                (value - 128.0) / 256.0 + 1.0 for value in asa
            )

            self._mag.write_register(MAG_CNTL1, MAG_CONTINUOUS_100HZ_16BIT)
        self._sleep(0.01)
        log.info(
            "AK8963 initialised, sensitivity: X=%f Y=%f Z=%f", *self.mag_sensitivity
        )

    def read_all(self) -> Mpu9250Data:
        """Read all sensors and derive roll, pitch and magnetic heading."""
        with _bus_errors():
            buf = self._device.read_registers(REG_ACCEL_XOUT_H, 14)
        ax_raw, ay_raw, az_raw, temp_raw, gx_raw, gy_raw, gz_raw = struct.unpack(
            _RAW_FORMAT, buf
        )
        mag_x_raw, mag_y_raw, mag_z_raw = self.read_magnetometer()

        accel_x = ax_raw / self.accel_scale * STANDARD_GRAVITY
        accel_y = ay_raw / self.accel_scale * STANDARD_GRAVITY
        accel_z = az_raw / self.accel_scale * STANDARD_GRAVITY

        gox, goy, goz = self.gyro_offset
        gyro_x = gx_raw / self.gyro_scale * DEG_TO_RAD - gox
        gyro_y = gy_raw / self.gyro_scale * DEG_TO_RAD - goy
        gyro_z = gz_raw / self.gyro_scale * DEG_TO_RAD - goz

        sx, sy, sz = self.mag_sensitivity
        mox, moy, moz = self.mag_offset
        mag_x = mag_x_raw * sx - mox
        mag_y = mag_y_raw * sy - moy
        mag_z = mag_z_raw * sz - moz

        return Mpu9250Data(
            accel_x=accel_x,
            accel_y=accel_y,
            accel_z=accel_z,
            gyro_x=gyro_x,
            gyro_y=gyro_y,
            gyro_z=gyro_z,
            mag_x=mag_x,
            mag_y=mag_y,
            mag_z=mag_z,
            temperature=temp_raw / 333.87 + 21.0,
            roll=math.atan2(accel_y, accel_z),
            pitch=math.atan2(-accel_x, math.sqrt(accel_y**2 + accel_z**2)),
            # Simple heading without tilt compensation.
            yaw=math.atan2(-mag_y, mag_x),
        )

    def read_magnetometer(self) -> Vector:
        """Return the field in µT, or zeros when no new sample is ready."""
        with _bus_errors():
            st1 = self._mag.read_register(MAG_ST1)
            if not st1 & 0x01:
                return (0.0, 0.0, 0.0)
            # Six data bytes followed by ST2.
            buf = self._mag.read_registers(MAG_HXL, 7)

        if buf[6] & 0x08:
            raise Mpu9250Error("MPU9250: magnetometer overflow")

        x, y, z = struct.unpack(_MAG_FORMAT, buf[:6])
        return (x * MAG_UT_PER_LSB, y * MAG_UT_PER_LSB, z * MAG_UT_PER_LSB)

    def calibrate_gyro(self, samples: int) -> Vector:
        """Average ``samples`` gyro readings; store and return the offsets in rad/s."""
        log.info("gyro calibration, %d samples", samples)
        sum_x = sum_y = sum_z = 0.0
        for _ in range(samples):
            data = self.read_all()
            sum_x += data.gyro_x
            sum_y += data.gyro_y
            sum_z += data.gyro_z
            self._sleep(0.01)

        if samples <= 0:
            self.gyro_offset = (math.nan, math.nan, math.nan)
        else:
            self.gyro_offset = (sum_x / samples, sum_y / samples, sum_z / samples)
        log.info("gyro offsets: X=%f Y=%f Z=%f", *self.gyro_offset)
        return self.gyro_offset

    def calibrate_magnetometer(self, duration_s: int) -> None:
        """Track field extremes for ``duration_s`` seconds and set hard-iron offsets."""
        log.info("magnetometer calibration, rotate the device for %d s", duration_s)
        lows = [sys.float_info.max] * 3
        highs = [-sys.float_info.max] * 3

        start = self._clock()
        while math.floor(self._clock() - start) < duration_s:
            reading = self.read_magnetometer()
            lows = [min(low, value) for low, value in zip(lows, reading)]
            highs = [max(high, value) for high, value in zip(highs, reading)]
            self._sleep(0.05)

        self.mag_offset = tuple(  # type: ignore[assignment]
            (high + low) / 2.0 for low, high in zip(lows, highs)
        )
        log.info("magnetometer offsets: X=%f Y=%f Z=%f", *self.mag_offset)

    def set_accel_range(self, accel_range: AccelRange) -> None:
        """Select the accelerometer range and update the scale factor."""
        accel_range = AccelRange(accel_range)
        with _bus_errors():
            self._device.write_register(REG_ACCEL_CONFIG, accel_range)
        self.accel_scale = ACCEL_LSB_PER_G[accel_range]

    def set_gyro_range(self, gyro_range: GyroRange) -> None:
        """Select the gyroscope range and update the scale factor."""
        gyro_range = GyroRange(gyro_range)
        with _bus_errors():
            self._device.write_register(REG_GYRO_CONFIG, gyro_range)
        self.gyro_scale = GYRO_LSB_PER_DPS[gyro_range]