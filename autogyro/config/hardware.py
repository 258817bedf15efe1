"""Hardware configuration: pins, bus speeds, servo and DShot settings, limits."""

from __future__ import annotations

from enum import Enum

# I2C bus for sensors (IMU, barometer)
I2C_SDA_PIN = 4
I2C_SCL_PIN = 5

# UART for GPS
GPS_TX_PIN = 0
GPS_RX_PIN = 1

# UART for telemetry
TELEMETRY_TX_PIN = 8
TELEMETRY_RX_PIN = 9

# Servo PWM outputs
SERVO_PITCH_PIN = 10
SERVO_ROLL_PIN = 12

# DShot motor outputs
MOTOR_LEFT_PIN = 11
MOTOR_RIGHT_PIN = 13

# Miscellaneous
LED_PIN = 25
BUZZER_PIN = 14
ARM_BUTTON_PIN = 15
RPM_SENSOR_PIN = 16

# Frequencies and baud rates
I2C_FREQUENCY = 400_000
GPS_BAUDRATE = 9_600
TELEMETRY_BAUDRATE = 115_200
SERVO_PWM_FREQUENCY = 50
DSHOT_FREQUENCY = 600_000

# Servo pulse timing (microseconds)
SERVO_MIN_PULSE_US = 1000
SERVO_CENTER_PULSE_US = 1500
SERVO_MAX_PULSE_US = 2000
SERVO_PWM_PERIOD_US = 20_000
SERVO_MAX_ANGLE_DEG = 45.0


class DshotSpeed(Enum):
    """DShot protocol speed variants."""

    DSHOT150 = "DShot150"
    DSHOT300 = "DShot300"
    DSHOT600 = "DShot600"
    DSHOT1200 = "DShot1200"

    def bit_period_ns(self) -> int:
        """Duration of one bit in nanoseconds."""
        return _BIT_PERIOD_NS[self]


_BIT_PERIOD_NS = {
    DshotSpeed.DSHOT150: 6667,
    DshotSpeed.DSHOT300: 3333,
    DshotSpeed.DSHOT600: 1667,
    DshotSpeed.DSHOT1200: 833,
}

DSHOT_TYPE = DshotSpeed.DSHOT600
DSHOT_THROTTLE_MIN = 48
DSHOT_THROTTLE_MAX = 2047
DSHOT_SPECIAL_COMMAND_THRESHOLD = 48

# I2C addresses
MPU9250_ADDR = 0x68
AK8963_ADDR = 0x0C
MPU6050_ADDR = 0x68
MPU6050_ADDR_ALT = 0x69
BMP280_ADDR = 0x76
BMP280_ADDR_ALT = 0x77
HMC5883L_ADDR = 0x1E
QMC5883L_ADDR = 0x0D

# System rates and timeouts
CONTROL_LOOP_RATE_HZ = 50
IMU_SAMPLE_RATE_HZ = 100
BARO_SAMPLE_RATE_HZ = 25
GPS_UPDATE_RATE_HZ = 5
TELEMETRY_RATE_HZ = 10
CRITICAL_TIMEOUT_MS = 1000
INIT_RETRY_COUNT = 3

# Hardware safety limits
SAFETY_MAX_ROLL_ANGLE_DEG = 30.0
SAFETY_MAX_PITCH_ANGLE_DEG = 25.0
SAFETY_MAX_ANGULAR_RATE_DEG_S = 180.0
SAFETY_MIN_AUTO_ALTITUDE_M = 5.0
SAFETY_MAX_ALTITUDE_M = 120.0
SAFETY_MIN_BATTERY_VOLTAGE = 10.5
SAFETY_CRITICAL_BATTERY_VOLTAGE = 10.0
SAFETY_MAX_DESCENT_RATE_MS = 3.0
SAFETY_MAX_CLIMB_RATE_MS = 5.0

# Filtering
COMPLEMENTARY_FILTER_ALPHA = 0.98
ACCEL_LPF_CUTOFF_HZ = 5.0
BARO_LPF_CUTOFF_HZ = 1.0
GPS_MOVING_AVERAGE_SIZE = 5