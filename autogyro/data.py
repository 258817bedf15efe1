"""Sensor records, control commands and shared flight-state containers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

SENSOR_CHANNEL_SIZE = 10
CONTROL_CHANNEL_SIZE = 5


@dataclass(frozen=True)
class ImuData:
    """Attitude (radians) and angular rates (radians per second)."""

    roll: float
    pitch: float
    yaw: float
    roll_rate: float
    pitch_rate: float
    yaw_rate: float
    timestamp_us: int


@dataclass(frozen=True)
class AltitudeData:
    """Barometric altitude reading."""

    altitude_m: float
    vertical_speed_mps: float
    pressure_pa: float
    temperature_c: float
    timestamp_us: int


@dataclass(frozen=True)
class GpsData:
    """GPS fix."""

    latitude: float
    longitude: float
    altitude_msl_m: float
    ground_speed_mps: float
    course_deg: float
    satellites: int
    hdop: float
    timestamp_us: int


@dataclass(frozen=True)
class ControlCommand:
    """Motor throttles (48-2047) and cyclic pitch/roll (-1.0 to 1.0)."""

    throttle_left: int
    throttle_right: int
    cyclic_pitch: float
    cyclic_roll: float


class FlightMode(Enum):
    """Flight modes of the autopilot."""

    DISARMED = auto()
    STABILIZE = auto()
    TAKEOFF = auto()
    LANDING = auto()
    EMERGENCY = auto()


class DataChannels:
    """Bounded queues carrying data between tasks."""

    def __init__(self) -> None:
        self.imu_channel: asyncio.Queue[ImuData] = asyncio.Queue(SENSOR_CHANNEL_SIZE)
        self.altitude_channel: asyncio.Queue[AltitudeData] = asyncio.Queue(
            SENSOR_CHANNEL_SIZE
        )
        self.gps_channel: asyncio.Queue[GpsData] = asyncio.Queue(SENSOR_CHANNEL_SIZE)
        self.control_channel: asyncio.Queue[ControlCommand] = asyncio.Queue(
            CONTROL_CHANNEL_SIZE
        )


class SystemState:
    """Shared system state; hold ``lock`` while reading or updating the sensor fields."""

    def __init__(self) -> None:
        self.armed: bool = False
        self.flight_mode: FlightMode = FlightMode.DISARMED
        self.last_imu: Optional[ImuData] = None
        self.last_altitude: Optional[AltitudeData] = None
        self.last_gps: Optional[GpsData] = None
        self.lock = asyncio.Lock()

    async def is_ready_for_flight(self) -> bool:
        """True once IMU and altitude data have arrived; GPS is not required."""
        async with self.lock:
            return self.last_imu is not None and self.last_altitude is not None


CHANNELS = DataChannels()
SYSTEM_STATE = SystemState()