# autogyro

Building blocks for an autogyro autopilot: configuration constants, shared flight-data
records and drivers for the I2C sensors and PWM servos the aircraft carries. The package
uses only the Python standard library.

## Contents

- `autogyro.config.flight` holds the PID gains (`PidGains`, for example `PID_ROLL_ANGLE` or
  `PID_ALTITUDE`) and the takeoff, landing, stabilisation, navigation, autogyro and safety
  limits. It also holds the unit conversions `deg_to_rad`, `rad_to_deg`, `ms_to_kmh` and
  `kmh_to_ms`, the `MessagePriority` enum and the `LogMask` flags.
- `autogyro.config.hardware` holds pin assignments, bus speeds, servo pulse timing, I2C
  addresses, system rates and hardware safety limits. It also defines `DshotSpeed`, whose
  `bit_period_ns()` gives the bit duration of each DShot variant.
- `autogyro.data` defines the frozen records `ImuData`, `AltitudeData`, `GpsData` and
  `ControlCommand`, and the `FlightMode` enum. `DataChannels` holds bounded `asyncio.Queue`s:
  each sensor queue holds 10 items and the control queue holds 5. `SystemState` carries
  `armed`, `flight_mode`, the most recent readings and a `lock`. The module-level `CHANNELS` and
  `SYSTEM_STATE` are shared instances.
- `autogyro.drivers.i2c` defines the `I2CBus` protocol, the `I2CError` exception and
  `RegisterDevice`, which reads and writes the 8-bit registers of one device.
- Sensor drivers:
  - `autogyro.drivers.bmp280.Bmp280` reads barometric pressure, temperature and altitude.
  - `autogyro.drivers.mpu6050.Mpu6050` and `autogyro.drivers.mpu6500.Mpu6500` read the
    accelerometer and the gyroscope.
  - `autogyro.drivers.mpu9250.Mpu9250` reads the accelerometer, the gyroscope and the AK8963
    magnetometer.
  - `autogyro.drivers.hmc5983.Hmc5983` reads the magnetometer and gives a heading.
- `autogyro.drivers.servo` provides `Servo` and `ServoGroup`. Both drive a `PwmChannel`, which
  holds a divider, a counter top and a duty value.

## Supplying a bus

The drivers run synchronously. Each one takes any object that has the two methods of
`I2CBus`:

- `write(addr, data)`
- `write_read(addr, data, length) -> bytes`

A failed transfer should raise `I2CError`. On hardware this object wraps your platform's I2C
interface. In tests it can be an in-memory register map.

A driver checks and configures its device when you construct it. Drivers take a `sleep`
callable, and some take a `clock` callable. These default to `time.sleep` and
`time.monotonic`, and you can replace them with fakes in tests.

```python
from autogyro.drivers.bmp280 import Bmp280
from autogyro.drivers.mpu6500 import Mpu6500

baro = Bmp280(bus)
altitude, pressure, temperature = baro.read_altitude()

imu = Mpu6500(bus)
imu.calibrate_gyro(100)
sample = imu.read_all()
print(altitude, sample.roll, sample.pitch)
```

## Errors

Each driver raises its own exception type, and a bus failure is re-raised as that type:

- `Bmp280Error` when the chip ID is not 0x58.
- `Mpu6050Error` for an unknown WHO_AM_I value. `Mpu6500` only logs a warning in this case.
- `Mpu9250Error` for an unknown IMU or AK8963 ID, and for a magnetometer overflow.
- `Hmc5983Error` for a wrong ID, a data overflow, and a calibration that collected fewer than
  50 samples.
- `ServoError` for a pulse width out of range, a full `ServoGroup`, or a position or target
  count that does not match the number of servos.

## Servos

```python
from autogyro.drivers.servo import PwmChannel, Servo

servo = Servo(PwmChannel())
servo.init()            # 50 Hz PWM, centre pulse
servo.set_angle(10.0)   # degrees; positions run from -1.0 to 1.0
servo.rate_limit = 2.0  # positions per second, or None
print(servo.position, servo.angle)
```

## Shared state

```python
from autogyro.data import SystemState

state = SystemState()
ready = await state.is_ready_for_flight()  # True once IMU and altitude data are present
```

## What the package does not do

The package contains no flight controller. It has no attitude, altitude or navigation control
loop, no DShot motor output, no GPS or telemetry link, and no command-line program. It provides
the configuration, data types and device drivers that such a controller would use.

## Running the tests

```
pip install ".[test]"
pytest
```