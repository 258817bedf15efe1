"""Driver for the MPU6050 six-axis accelerometer and gyroscope."""

from __future__ import annotations

import logging
import math
import struct
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterator, Protocol, Tuple, runtime_checkable

from autogyro.config.hardware import MPU6050_ADDR
from autogyro.drivers.i2c import I2CBus, I2CError, RegisterDevice

log = logging.getLogger(__name__)

REG_PWR_MGMT_1 = 0x6B
REG_PWR_MGMT_2 = 0x6C
REG_CONFIG = 0x1A
REG_GYRO_CONFIG = 0x1B
REG_ACCEL_CONFIG = 0x1C
REG_SMPLRT_DIV = 0x19
REG_INT_ENABLE = 0x38
REG_INT_STATUS = 0x3A
REG_WHO_AM_I = 0x75
REG_ACCEL_XOUT_H = 0x3B

VALID_IDS = frozenset({0x68, 0x72})
STANDARD_GRAVITY = 9.81
DEG_TO_RAD = math.pi / 180.0

_RAW_FORMAT = ">7h"


class AccelRange(IntEnum):
    """Accelerometer full-scale range; the value is the config register setting."""

    G2 = 0x00
    G4 = 0x08
    G8 = 0x10
    G16 = 0x18


class GyroRange(IntEnum):
    """Gyroscope full-scale range; the value is the config register setting."""

    DEG250 = 0x00
    DEG500 = 0x08
    DEG1000 = 0x10
    DEG2000 = 0x18


# Sensitivity of each range: LSB per g and LSB per degree per second.
ACCEL_LSB_PER_G = {
    AccelRange.G2: 16384.0,
    AccelRange.G4: 8192.0,
    AccelRange.G8: 4096.0,
    AccelRange.G16: 2048.0,
}

GYRO_LSB_PER_DPS = {
    GyroRange.DEG250: 131.0,
    GyroRange.DEG500: 65.5,
    GyroRange.DEG1000: 32.8,
    GyroRange.DEG2000: 16.4,
}


class Mpu6050Error(Exception):
    """The MPU6050 could not be reached, identified or configured."""


@contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except I2CError as exc:
        raise Mpu6050Error(f"MPU6050: I2C error: {exc}") from exc


@dataclass(frozen=True)
class RawData:
    """Raw sensor counts."""

    accel_x_raw: int
    accel_y_raw: int
    accel_z_raw: int
    gyro_x_raw: int
    gyro_y_raw: int
    gyro_z_raw: int
    temp_raw: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "RawData":
        """Decode the 14 big-endian bytes starting at ACCEL_XOUT_H."""
        if len(data) != struct.calcsize(_RAW_FORMAT):
            raise ValueError(f"expected 14 data bytes, got {len(data)}")
        ax, ay, az, temp, gx, gy, gz = struct.unpack(_RAW_FORMAT, bytes(data))
        return cls(
            accel_x_raw=ax,
            accel_y_raw=ay,
            accel_z_raw=az,
            gyro_x_raw=gx,
            gyro_y_raw=gy,
            gyro_z_raw=gz,
            temp_raw=temp,
        )


@dataclass(frozen=True)
class ProcessedData:
    """Acceleration in m/s², angular rate in rad/s, temperature in °C."""

    accel_x: float
    accel_y: float
    accel_z: float
    gyro_x: float
    gyro_y: float
    gyro_z: float
    temperature: float


@runtime_checkable
class ImuSensor(Protocol):
    """Common interface of IMU sensors."""

    def read_processed(self) -> ProcessedData:
        """Read data converted to physical units."""

    def calibrate(self) -> None:
        """Calibrate the sensor."""


class Mpu6050:
    """MPU6050 sensor; the device is checked and configured on construction."""

    def __init__(
        self,
        bus: I2CBus,
        addr: int = MPU6050_ADDR,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._device = RegisterDevice(bus, addr)
        self._sleep = sleep
        self.accel_range = AccelRange.G2
        self.gyro_range = GyroRange.DEG250
        self.accel_scale = ACCEL_LSB_PER_G[AccelRange.G2]
        self.gyro_scale = GYRO_LSB_PER_DPS[GyroRange.DEG250]
        self._init()

    def _init(self) -> None:
        with _bus_errors():
            who_am_i = self._device.read_register(REG_WHO_AM_I)
            if who_am_i not in VALID_IDS:
                log.error("unexpected MPU6050 id: 0x%02x", who_am_i)
                raise Mpu6050Error(f"MPU6050: invalid device id 0x{who_am_i:02x}")

            self._device.write_register(REG_PWR_MGMT_1, 0x80)
            self._sleep(0.1)

            # Wake up, PLL with the X gyroscope as clock source.
            self._device.write_register(REG_PWR_MGMT_1, 0x01)
            self._sleep(0.01)

            # DLPF 44 Hz accel / 42 Hz gyro; 1 kHz / (1 + 9) = 100 Hz sampling.
            self._device.write_register(REG_CONFIG, 0x03)
            self._device.write_register(REG_SMPLRT_DIV, 9)

        self.set_accel_range(AccelRange.G2)
        self.set_gyro_range(GyroRange.DEG250)

        with _bus_errors():
            self._device.write_register(REG_PWR_MGMT_2, 0x00)

        self._sleep(0.02)
        log.info("MPU6050 initialised")

    def set_accel_range(self, accel_range: AccelRange) -> None:
        """Select the accelerometer range and update the scale factor."""
        accel_range = AccelRange(accel_range)
        with _bus_errors():
            self._device.write_register(REG_ACCEL_CONFIG, accel_range)
        self.accel_range = accel_range
        self.accel_scale = ACCEL_LSB_PER_G[accel_range]

    def set_gyro_range(self, gyro_range: GyroRange) -> None:
        """Select the gyroscope range and update the scale factor."""
        gyro_range = GyroRange(gyro_range)
        with _bus_errors():
            self._device.write_register(REG_GYRO_CONFIG, gyro_range)
        self.gyro_range = gyro_range
        self.gyro_scale = GYRO_LSB_PER_DPS[gyro_range]

    def read_raw(self) -> RawData:
        """Read raw counts of all sensors in one transfer."""
        with _bus_errors():
            buf = self._device.read_registers(REG_ACCEL_XOUT_H, 14)
        return RawData.from_bytes(buf)

    def read_all(self) -> ProcessedData:
        """Read all sensors and convert to physical units."""
        raw = self.read_raw()
        accel = self.accel_scale
        gyro = self.gyro_scale
        return ProcessedData(
            accel_x=raw.accel_x_raw / accel * STANDARD_GRAVITY,
            accel_y=raw.accel_y_raw / accel * STANDARD_GRAVITY,
            accel_z=raw.accel_z_raw / accel * STANDARD_GRAVITY,
            gyro_x=raw.gyro_x_raw / gyro * DEG_TO_RAD,
            gyro_y=raw.gyro_y_raw / gyro * DEG_TO_RAD,
            gyro_z=raw.gyro_z_raw / gyro * DEG_TO_RAD,
            temperature=36.53 + raw.temp_raw / 340.0,
        )

    def calibrate_gyro(self, samples: int) -> Tuple[float, float, float]:
        """Average ``samples`` gyro readings; return the zero offsets in rad/s."""
        log.info("gyro calibration started, %d samples", samples)
        sum_x = sum_y = sum_z = 0
        for _ in range(samples):
            raw = self.read_raw()
            sum_x += raw.gyro_x_raw
            sum_y += raw.gyro_y_raw
            sum_z += raw.gyro_z_raw
            self._sleep(0.01)

        if samples <= 0:
            return (math.nan, math.nan, math.nan)

        offsets = tuple(
            total / samples / self.gyro_scale * DEG_TO_RAD
            for total in (sum_x, sum_y, sum_z)
        )
        log.info("gyro calibration finished: X=%f Y=%f Z=%f", *offsets)
        return offsets  # type: ignore[return-value]

    def data_ready(self) -> bool:
        """True if a new sample is available."""
        with _bus_errors():
            status = self._device.read_register(REG_INT_STATUS)
        return bool(status & 0x01)