"""Driver for the BMP280 barometric pressure and temperature sensor."""

from __future__ import annotations

import logging
import math
import struct
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterator, Tuple

from autogyro.config.hardware import BMP280_ADDR
from autogyro.drivers.i2c import I2CBus, I2CError, RegisterDevice

log = logging.getLogger(__name__)

REG_ID = 0xD0
REG_RESET = 0xE0
REG_STATUS = 0xF3
REG_CTRL_MEAS = 0xF4
REG_CONFIG = 0xF5
REG_PRESS_MSB = 0xF7
REG_CALIB_00 = 0x88

CHIP_ID = 0x58
RESET_COMMAND = 0xB6
STANDARD_SEA_LEVEL_PA = 101325.0

_CALIB_FORMAT = "<HhhHhhhhhhhh"


class Mode(IntEnum):
    """Power mode."""

    SLEEP = 0x00
    FORCED = 0x01
    NORMAL = 0x03


class Oversampling(IntEnum):
    """Measurement oversampling."""

    SKIP = 0x00
    X1 = 0x01
    X2 = 0x02
    X4 = 0x03
    X8 = 0x04
    X16 = 0x05


class IirFilter(IntEnum):
    """IIR filter coefficient."""

    OFF = 0x00
    X2 = 0x01
    X4 = 0x02
    X8 = 0x03
    X16 = 0x04


class StandbyTime(IntEnum):
    """Standby time between measurements in normal mode."""

    MS0_5 = 0x00
    MS62_5 = 0x01
    MS125 = 0x02
    MS250 = 0x03
    MS500 = 0x04
    MS1000 = 0x05
    MS2000 = 0x06
    MS4000 = 0x07


class Bmp280Error(Exception):
    """The BMP280 could not be reached, identified or calibrated."""


@contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except I2CError as exc:
        raise Bmp280Error(f"BMP280: I2C error: {exc}") from exc


def _div_trunc(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


@dataclass(frozen=True)
class CalibrationData:
    """Factory trimming coefficients."""

    dig_t1: int = 0
    dig_t2: int = 0
    dig_t3: int = 0
    dig_p1: int = 0
    dig_p2: int = 0
    dig_p3: int = 0
    dig_p4: int = 0
    dig_p5: int = 0
    dig_p6: int = 0
    dig_p7: int = 0
    dig_p8: int = 0
    dig_p9: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "CalibrationData":
        """Decode the 24 little-endian calibration bytes."""
        if len(data) != struct.calcsize(_CALIB_FORMAT):
            raise ValueError(f"expected 24 calibration bytes, got {len(data)}")
        return cls(*struct.unpack(_CALIB_FORMAT, bytes(data)))


class Bmp280:
    """BMP280 sensor; the device is checked and configured on construction."""

    def __init__(
        self,
        bus: I2CBus,
        addr: int = BMP280_ADDR,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._device = RegisterDevice(bus, addr)
        self._sleep = sleep
        self.calibration = CalibrationData()
        self.sea_level_pa = STANDARD_SEA_LEVEL_PA
        self._init()

    def _init(self) -> None:
        with _bus_errors():
            chip_id = self._device.read_register(REG_ID)
            if chip_id != CHIP_ID:
                log.error("unexpected BMP280 id: 0x%02x", chip_id)
                raise Bmp280Error(f"BMP280: invalid device id 0x{chip_id:02x}")

            self._device.write_register(REG_RESET, RESET_COMMAND)
            self._sleep(0.01)

            self.calibration = CalibrationData.from_bytes(
                self._device.read_registers(REG_CALIB_00, 24)
            )

            ctrl_meas = (
                Oversampling.X16 << 5 | Oversampling.X16 << 2 | Mode.NORMAL
            )
            self._device.write_register(REG_CTRL_MEAS, ctrl_meas)

            config = StandbyTime.MS125 << 5 | IirFilter.X4 << 2
            self._device.write_register(REG_CONFIG, config)

        self._sleep(0.05)
        log.info("BMP280 initialised")

    def read(self) -> Tuple[float, float]:
        """Return (temperature in °C, pressure in Pa)."""
        with _bus_errors():
            status = self._device.read_register(REG_STATUS)
            if status & 0x08:
                self._sleep(0.01)
            buf = self._device.read_registers(REG_PRESS_MSB, 6)

        press_raw = (buf[0] << 12) | (buf[1] << 4) | (buf[2] >> 4)
        temp_raw = (buf[3] << 12) | (buf[4] << 4) | (buf[5] >> 4)

        temperature, t_fine = self.compensate_temperature(temp_raw)
        pressure = self.compensate_pressure(press_raw, t_fine)
        return temperature, pressure

    def read_altitude(self) -> Tuple[float, float, float]:
        """Return (altitude in m, pressure in Pa, temperature in °C)."""
        temperature, pressure = self.read()
        ratio = pressure / self.sea_level_pa
        altitude = 44330.0 * (1.0 - ratio**0.1903) if ratio >= 0 else math.nan
        return altitude, pressure, temperature

    def set_sea_level_pressure(self, pressure_pa: float) -> None:
        """Set the reference sea-level pressure used for altitude."""
        self.sea_level_pa = pressure_pa

    def compensate_temperature(self, adc_t: int) -> Tuple[float, int]:
        """Return (temperature in °C, t_fine) for a raw temperature reading."""
        c = self.calibration
        var1 = ((adc_t >> 3) - (c.dig_t1 << 1)) * c.dig_t2 >> 11
        delta = (adc_t >> 4) - c.dig_t1
        var2 = ((delta * delta) >> 12) * c.dig_t3 >> 14
        t_fine = var1 + var2
        temperature = ((t_fine * 5 + 128) >> 8) / 100.0
        return temperature, t_fine

    def compensate_pressure(self, adc_p: int, t_fine: int) -> float:
        """Return pressure in Pa for a raw pressure reading; 0.0 if uncomputable."""
        c = self.calibration
        var1 = (t_fine >> 1) - 64000
        var2 = var1 * var1 * c.dig_p6 >> 15
        var2 = var2 + ((var1 * c.dig_p5) << 1)
        var2 = (var2 >> 2) + (c.dig_p4 << 16)
        var1 = ((c.dig_p3 * ((var1 * var1) >> 13)) >> 3) + ((c.dig_p2 * var1) >> 1)
        var1 = var1 >> 18
        var1 = ((32768 + var1) * c.dig_p1) >> 15

        if var1 == 0:
            return 0.0

        p = ((1048576 - adc_p) - (var2 >> 12)) * 3125
        if p < 0x80000000:
            p = _div_trunc(p << 1, var1)
        else:
            p = _div_trunc(p, var1) * 2

        var1 = (c.dig_p9 * ((p >> 3) * (p >> 3)) >> 13) >> 12
        var2 = ((p >> 2) * c.dig_p8) >> 13
        p = p + ((var1 + var2 + c.dig_p7) >> 4)
        return float(p)