"""PWM servo driver and synchronised servo groups."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, List, Optional, Sequence

from autogyro.config.hardware import (
    SERVO_CENTER_PULSE_US,
    SERVO_MAX_ANGLE_DEG,
    SERVO_MAX_PULSE_US,
    SERVO_MIN_PULSE_US,
    SERVO_PWM_PERIOD_US,
)

log = logging.getLogger(__name__)

_STEP_MS = 20


class ServoError(Exception):
    """Invalid servo angle, pulse width or PWM setting."""


def _constrain(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _map_range(
    value: float, in_min: float, in_max: float, out_min: float, out_max: float
) -> float:
    return (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


class PwmChannel:
    """State of one PWM output: clock divider, counter top and duty cycle."""

    def __init__(self, divider: int = 1, top: int = 0xFFFF) -> None:
        self.divider = divider
        self.top = top
        self.duty = 0

    def configure(self, divider: int, top: int) -> None:
        """Set the clock divider and counter wrap value."""
        if not 0 <= top <= 0xFFFF:
            raise ValueError(f"PWM top out of range: {top}")
        if divider <= 0:
            raise ValueError(f"PWM divider must be positive: {divider}")
        self.divider = divider
        self.top = top

    def set_duty_cycle(self, duty: int) -> None:
        """Set the compare value; 0 switches the output off."""
        if not 0 <= duty <= self.max_duty_cycle():
            raise ValueError(f"duty {duty} exceeds {self.max_duty_cycle()}")
        self.duty = duty

    def max_duty_cycle(self) -> int:
        """Largest valid duty value."""
        return self.top


class Servo:
    """A servo driven by pulse width; positions range from -1.0 to 1.0."""

    def __init__(
        self,
        pwm: PwmChannel,
        min_pulse: int = SERVO_MIN_PULSE_US,
        max_pulse: int = SERVO_MAX_PULSE_US,
        center_pulse: int = SERVO_CENTER_PULSE_US,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pwm = pwm
        self.min_pulse = min_pulse
        self.max_pulse = max_pulse
        self.center_pulse = center_pulse
        self.inverted = False
        self._sleep = sleep
        self._clock = clock
        self._position = 0.0
        self._rate_limit: Optional[float] = None
        self._last_update: Optional[float] = None

    @property
    def position(self) -> float:
        """Current position, -1.0 to 1.0."""
        return self._position

    @property
    def angle(self) -> float:
        """Current angle in degrees."""
        return self._position * SERVO_MAX_ANGLE_DEG

    @property
    def rate_limit(self) -> Optional[float]:
        """Maximum movement in positions per second, or None for no limit."""
        return self._rate_limit

    @rate_limit.setter
    def rate_limit(self, value: Optional[float]) -> None:
        self._rate_limit = value
        if value is None:
            self._last_update = None

    def init(self) -> None:
        """Configure 50 Hz PWM and move to centre."""
        self.pwm.configure(divider=125, top=SERVO_PWM_PERIOD_US)
        self.set_pulse_width(self.center_pulse)
        self._sleep(0.5)

    def set_position(self, position: float) -> None:
        """Move to ``position`` (-1.0 to 1.0), honouring inversion and rate limit."""
        position = _constrain(position, -1.0, 1.0)
        if self.inverted:
            position = -position

        if self._rate_limit is not None:
            target = self._apply_rate_limit(position, self._rate_limit)
        else:
            target = position

        if target >= 0.0:
            pulse = _map_range(target, 0.0, 1.0, self.center_pulse, self.max_pulse)
        else:
            pulse = _map_range(target, -1.0, 0.0, self.min_pulse, self.center_pulse)

        self.set_pulse_width(int(pulse))
        self._position = target

    def set_angle(self, angle_deg: float) -> None:
        """Move to an angle in degrees."""
        self.set_position(angle_deg / SERVO_MAX_ANGLE_DEG)

    def set_pulse_width(self, pulse_us: int) -> None:
        """Output a pulse of ``pulse_us`` microseconds."""
        if not self.min_pulse <= pulse_us <= self.max_pulse:
            raise ServoError(f"invalid pulse width: {pulse_us} us")
        duty = pulse_us * self.pwm.max_duty_cycle() // SERVO_PWM_PERIOD_US
        self.pwm.set_duty_cycle(duty)
        log.debug("servo pulse %d us, duty %d", pulse_us, duty)

    def move_to(self, target_position: float, duration_ms: int) -> None:
        """Move smoothly to ``target_position`` over ``duration_ms``."""
        start = self._position
        steps = max(duration_ms // _STEP_MS, 1)
        for i in range(steps + 1):
            progress = i / steps
            self.set_position(start + (target_position - start) * progress)
            self._sleep(_STEP_MS / 1000)

    def calibrate(self) -> None:
        """Sweep to both extremes and back to centre."""
        log.info("servo calibration started")
        for position in (-1.0, 0.0, 1.0):
            self.set_position(position)
            self._sleep(3.0)
        self.set_position(0.0)
        log.info("servo calibration finished")

    def disable(self) -> None:
        """Stop the control signal."""
        self.pwm.set_duty_cycle(0)

    def _apply_rate_limit(self, target: float, rate: float) -> float:
        now = self._clock()
        if self._last_update is None:
            self._last_update = now
            return target
        dt = float(math.floor(now - self._last_update))
        max_change = rate * dt
        delta = _constrain(target - self._position, -max_change, max_change)
        self._last_update = now
        return self._position + delta


class ServoGroup:
    """A bounded set of servos moved together."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.servos: List[Servo] = []

    def add_servo(self, servo: Servo) -> None:
        """Add a servo; raise ServoError if the group is full."""
        if len(self.servos) >= self.capacity:
            raise ServoError(f"servo group is full ({self.capacity})")
        self.servos.append(servo)

    def set_positions(self, positions: Sequence[float]) -> None:
        """Set one position per servo."""
        if len(positions) != len(self.servos):
            raise ServoError("number of positions does not match number of servos")
        for servo, position in zip(self.servos, positions):
            servo.set_position(position)

    def move_all_to(self, targets: Sequence[float], duration_ms: int) -> None:
        """Move all servos smoothly to their targets over ``duration_ms``."""
        if len(targets) != len(self.servos):
            raise ServoError("number of targets does not match number of servos")
        steps = max(duration_ms // _STEP_MS, 1)
        starts = [servo.position for servo in self.servos]
        for i in range(steps + 1):
            progress = i / steps
            for servo, start, target in zip(self.servos, starts, targets):
                servo.set_position(start + (target - start) * progress)
            time.sleep(_STEP_MS / 1000)