"""Driver for the HMC5983 three-axis magnetometer."""

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

from autogyro.config.hardware import HMC5883L_ADDR
from autogyro.drivers.i2c import I2CBus, I2CError, RegisterDevice

log = logging.getLogger(__name__)

REG_CONFIG_A = 0x00
REG_CONFIG_B = 0x01
REG_MODE = 0x02
REG_DATA_X_MSB = 0x03
REG_STATUS = 0x09
REG_ID_A = 0x0A
REG_ID_B = 0x0B
REG_ID_C = 0x0C
REG_TEMP_MSB = 0x31

DEVICE_ID = b"H43"
OVERFLOW_VALUE = -4096
MIN_CALIBRATION_SAMPLES = 50
SELF_TEST_MIN_UT = 100.0
SELF_TEST_MAX_UT = 500.0

# Measurement configuration bits in CONFIG_A.
MEASURE_NORMAL = 0x00
MEASURE_POSITIVE_BIAS = 0x01
MEASURE_NEGATIVE_BIAS = 0x02

Vector = Tuple[float, float, float]


class DataRate(IntEnum):
    """Output data rate."""

    HZ0_75 = 0x00
    HZ1_5 = 0x04
    HZ3 = 0x08
    HZ7_5 = 0x0C
    HZ15 = 0x10
    HZ30 = 0x14
    HZ75 = 0x18
    # Only in single-measurement mode.
    HZ220 = 0x1C


class SampleAverage(IntEnum):
    """Number of samples averaged per measurement."""

    AVG1 = 0x00
    AVG2 = 0x20
    AVG4 = 0x40
    AVG8 = 0x60


class GainRange(IntEnum):
    """Field range (gain); the value is the CONFIG_B register setting."""

    GA0_88 = 0x00
    GA1_3 = 0x20
    GA1_9 = 0x40
    GA2_5 = 0x60
    GA4_0 = 0x80
    GA4_7 = 0xA0
    GA5_6 = 0xC0
    GA8_1 = 0xE0

    def lsb_per_gauss(self) -> float:
        """Sensitivity of this range in counts per gauss."""
        return _LSB_PER_GAUSS[self]


_LSB_PER_GAUSS = {
    GainRange.GA0_88: 1370.0,
    GainRange.GA1_3: 1090.0,
    GainRange.GA1_9: 820.0,
    GainRange.GA2_5: 660.0,
    GainRange.GA4_0: 440.0,
    GainRange.GA4_7: 390.0,
    GainRange.GA5_6: 330.0,
    GainRange.GA8_1: 230.0,
}


class OperatingMode(IntEnum):
    """Measurement mode."""

    CONTINUOUS = 0x00
    SINGLE = 0x01
    IDLE = 0x02


class Hmc5983Error(Exception):
    """The HMC5983 failed, was not identified, overflowed or could not be calibrated."""


@contextmanager
def _bus_errors() -> Iterator[None]:
    try:
        yield
    except I2CError as exc:
        raise Hmc5983Error(f"HMC5983: I2C error: {exc}") from exc


@dataclass(frozen=True)
class MagData:
    """Field in µT, temperature in °C and magnetic heading in rad (0 = north)."""

    x: float
    y: float
    z: float
    temperature: float
    heading: float


def _config_a(measurement: int) -> int:
    return SampleAverage.AVG8 | DataRate.HZ15 | measurement


class Hmc5983:
    """HMC5983 magnetometer; the device is checked and configured on construction."""

    def __init__(
        self,
        bus: I2CBus,
        addr: int = HMC5883L_ADDR,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._device = RegisterDevice(bus, addr)
        self._sleep = sleep
        self._clock = clock
        self.gain_lsb_per_gauss = GainRange.GA1_3.lsb_per_gauss()
        self.offset: Vector = (0.0, 0.0, 0.0)
        self.scale: Vector = (1.0, 1.0, 1.0)
        self.declination = 0.0
        self._init()

    def _write(self, reg: int, value: int) -> None:
        with _bus_errors():
            self._device.write_register(reg, value)

    def _init(self) -> None:
        with _bus_errors():
            ident = bytes(
                self._device.read_register(reg) for reg in (REG_ID_A, REG_ID_B, REG_ID_C)
            )
        if ident != DEVICE_ID:
            log.error("unexpected HMC5983 id: %r", ident)
            raise Hmc5983Error(f"HMC5983: invalid device id {ident!r}")
        log.info("HMC5983 detected")

        self._write(REG_CONFIG_A, _config_a(MEASURE_NORMAL))
        self.set_gain(GainRange.GA1_3)
        self._write(REG_MODE, OperatingMode.CONTINUOUS)

        self._sleep(0.07)
        log.info("HMC5983 initialised")

    def set_gain(self, gain: GainRange) -> None:
        """Select the field range and update the conversion factor."""
        gain = GainRange(gain)
        self._write(REG_CONFIG_B, gain)
        self.gain_lsb_per_gauss = gain.lsb_per_gauss()

    def read(self) -> MagData:
        """Read the field, apply calibration and compute the heading."""
        with _bus_errors():
            status = self._device.read_register(REG_STATUS)
            if not status & 0x01:
                self._sleep(0.01)
            buf = self._device.read_registers(REG_DATA_X_MSB, 6)

        # Registers hold X, Z, Y in that order.
        x_raw, z_raw, y_raw = struct.unpack(">3h", buf)
        if OVERFLOW_VALUE in (x_raw, y_raw, z_raw):
            raise Hmc5983Error("HMC5983: data overflow")

        with _bus_errors():
            (temp_raw,) = struct.unpack(">h", self._device.read_registers(REG_TEMP_MSB, 2))
        temperature = temp_raw / 128.0 + 25.0

        # One gauss is 100 µT.
        gain = self.gain_lsb_per_gauss
        ox, oy, oz = self.offset
        sx, sy, sz = self.scale
        x = (x_raw / gain * 100.0 - ox) * sx
        y = (y_raw / gain * 100.0 - oy) * sy
        z = (z_raw / gain * 100.0 - oz) * sz

        heading = math.atan2(-y, x) + self.declination
        if heading < 0.0:
            heading += 2.0 * math.pi
        elif heading > 2.0 * math.pi:
            heading -= 2.0 * math.pi

        return MagData(x=x, y=y, z=z, temperature=temperature, heading=heading)

    def calibrate(self, duration_s: int) -> None:
        """Collect field extremes for ``duration_s`` seconds; set hard- and soft-iron terms."""
        log.info("magnetometer calibration: rotate the device on all axes for %d s", duration_s)
        lows = [sys.float_info.max] * 3
        highs = [-sys.float_info.max] * 3
        samples = 0

        old_offset, old_scale = self.offset, self.scale
        self.offset = (0.0, 0.0, 0.0)
        self.scale = (1.0, 1.0, 1.0)

        start = self._clock()
        while math.floor(self._clock() - start) < duration_s:
            try:
                data = self.read()
            except Hmc5983Error:
                pass
            else:
                reading = (data.x, data.y, data.z)
                lows = [min(low, value) for low, value in zip(lows, reading)]
                highs = [max(high, value) for high, value in zip(highs, reading)]
                samples += 1
            self._sleep(0.05)

        if samples < MIN_CALIBRATION_SAMPLES:
            log.error("not enough samples for calibration: %d", samples)
            self.offset, self.scale = old_offset, old_scale
            raise Hmc5983Error(f"HMC5983: calibration error, only {samples} samples")

        self.offset = tuple(  # type: ignore[assignment]
            (high + low) / 2.0 for low, high in zip(lows, highs)
        )
        deltas = [high - low for low, high in zip(lows, highs)]
        avg_delta = sum(deltas) / 3.0
        if all(delta > 0.0 for delta in deltas):
            self.scale = tuple(avg_delta / delta for delta in deltas)  # type: ignore[assignment]

        log.info("calibration offsets: X=%f Y=%f Z=%f", *self.offset)
        log.info("calibration scales: X=%f Y=%f Z=%f", *self.scale)
        log.info("collected %d samples", samples)

    def set_declination(self, declination_deg: float) -> None:
        """Set the local magnetic declination in degrees."""
        self.declination = declination_deg * math.pi / 180.0
        log.info("magnetic declination set: %f deg", declination_deg)

    def self_test(self) -> bool:
        """Compare readings with positive and negative bias; True if within limits."""
        log.info("HMC5983 self-test started")

        self._write(REG_CONFIG_A, _config_a(MEASURE_POSITIVE_BIAS))
        self._sleep(0.1)
        data_pos = self.read()

        self._write(REG_CONFIG_A, _config_a(MEASURE_NEGATIVE_BIAS))
        self._sleep(0.1)
        data_neg = self.read()

        self._write(REG_CONFIG_A, _config_a(MEASURE_NORMAL))

        diffs = (
            abs(data_pos.x - data_neg.x),
            abs(data_pos.y - data_neg.y),
            abs(data_pos.z - data_neg.z),
        )
        log.info("self-test difference: X=%f Y=%f Z=%f µT", *diffs)

        passed = all(SELF_TEST_MIN_UT < diff < SELF_TEST_MAX_UT for diff in diffs)
        if passed:
            log.info("self-test passed")
        else:
            log.warning("self-test failed")
        return passed