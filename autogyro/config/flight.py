"""Flight parameters: controller gains, flight phases, safety limits, units."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum, IntFlag


@dataclass(frozen=True)
class PidGains:
    """Gains and limits of one PID loop."""

    kp: float
    ki: float
    kd: float
    i_limit: float
    output_limit: float


# Controller gains
PID_ROLL_ANGLE = PidGains(kp=4.5, ki=0.02, kd=0.15, i_limit=10.0, output_limit=1.0)
PID_ROLL_RATE = PidGains(kp=0.15, ki=0.05, kd=0.004, i_limit=20.0, output_limit=1.0)
PID_PITCH_ANGLE = PidGains(kp=4.5, ki=0.02, kd=0.15, i_limit=10.0, output_limit=1.0)
PID_PITCH_RATE = PidGains(kp=0.15, ki=0.05, kd=0.004, i_limit=20.0, output_limit=1.0)
# Output kept small: yaw authority of an autogyro is limited.
PID_YAW_RATE = PidGains(kp=2.5, ki=0.01, kd=0.0, i_limit=10.0, output_limit=0.3)
# Output is a throttle change.
PID_ALTITUDE = PidGains(kp=1.5, ki=0.05, kd=0.8, i_limit=5.0, output_limit=0.5)
PID_VERTICAL_SPEED = PidGains(kp=3.0, ki=0.1, kd=0.05, i_limit=10.0, output_limit=0.8)
# Output is a tilt angle in degrees.
PID_POSITION = PidGains(kp=0.8, ki=0.01, kd=0.2, i_limit=5.0, output_limit=15.0)

# Takeoff
TAKEOFF_TARGET_ALTITUDE_M = 10.0
TAKEOFF_CLIMB_RATE_MS = 1.5
TAKEOFF_MIN_THROTTLE = 0.3
TAKEOFF_INITIAL_THROTTLE = 0.5
TAKEOFF_MAX_THROTTLE = 0.8
TAKEOFF_MOTOR_SPINUP_TIME_MS = 2000
TAKEOFF_MIN_ROTOR_RPM = 200.0
TAKEOFF_MAX_PITCH_ANGLE_DEG = 10.0
TAKEOFF_ALTITUDE_TOLERANCE_M = 0.5

# Landing
LANDING_DESCENT_RATE_MS = 0.8
LANDING_FINAL_DESCENT_RATE_MS = 0.3
LANDING_FINAL_APPROACH_ALTITUDE_M = 2.0
LANDING_MIN_THROTTLE = 0.15
LANDING_FINAL_THROTTLE = 0.1
LANDING_MOTOR_CUTOFF_ALTITUDE_M = 0.3
LANDING_MAX_TILT_ANGLE_DEG = 5.0
LANDING_GROUND_SETTLE_TIME_MS = 1000

# Stabilisation
STABILIZATION_MAX_ROLL_ANGLE_DEG = 25.0
STABILIZATION_MAX_PITCH_ANGLE_DEG = 20.0
STABILIZATION_MAX_ANGULAR_RATE_RAD_S = 3.14
STABILIZATION_ANGLE_DEADBAND_DEG = 1.0
STABILIZATION_CONTROL_EXPO = 0.3

# Navigation
NAVIGATION_WAYPOINT_RADIUS_M = 3.0
NAVIGATION_MAX_SPEED_MS = 15.0
NAVIGATION_CRUISE_SPEED_MS = 10.0
NAVIGATION_MIN_SPEED_MS = 5.0
NAVIGATION_MAX_BANK_ANGLE_DEG = 30.0
NAVIGATION_TURN_LEAD_DISTANCE_M = 5.0

# Autogyro specifics
AUTOGYRO_MIN_AUTOROTATION_SPEED_MS = 8.0
AUTOGYRO_OPTIMAL_ROTOR_RPM = 350.0
AUTOGYRO_MIN_ROTOR_RPM = 250.0
AUTOGYRO_MAX_ROTOR_RPM = 450.0
AUTOGYRO_THRUST_TO_PITCH_RATIO = 0.15
AUTOGYRO_ROTOR_RESPONSE_DELAY_MS = 500
AUTOGYRO_YAW_THRUST_DIFFERENTIAL = 0.1

# Flight safety
SAFETY_MIN_SAFE_ALTITUDE_M = 3.0
SAFETY_EMERGENCY_LANDING_ALTITUDE_M = 30.0
SAFETY_MAX_ANGLE_OF_ATTACK_DEG = 15.0
SAFETY_FAILSAFE_TIMEOUT_S = 30
SAFETY_MAX_DISTANCE_FROM_HOME_M = 500.0
SAFETY_MIN_GPS_SATELLITES = 6
SAFETY_MAX_GPS_HDOP = 2.5


def deg_to_rad(deg: float) -> float:
    """Convert degrees to radians."""
    return deg * (math.pi / 180.0)


def rad_to_deg(rad: float) -> float:
    """Convert radians to degrees."""
    return rad * (180.0 / math.pi)


def ms_to_kmh(ms: float) -> float:
    """Convert metres per second to kilometres per hour."""
    return ms * 3.6


def kmh_to_ms(kmh: float) -> float:
    """Convert kilometres per hour to metres per second."""
    return kmh / 3.6


class MessagePriority(IntEnum):
    """Telemetry message priority; lower is more urgent."""

    CRITICAL = 0
    HIGH = 1
    NORMAL = 2
    LOW = 3


class LogMask(IntFlag):
    """Bit flags selecting which subsystems are logged."""

    ATTITUDE = 1 << 0
    ALTITUDE = 1 << 1
    GPS = 1 << 2
    MOTORS = 1 << 3
    PID = 1 << 4
    SYSTEM = 1 << 5
    ALL = 0xFFFFFFFF