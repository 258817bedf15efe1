"""Configuration, flight data and I2C sensor and PWM servo drivers for an autogyro autopilot."""

__version__ = "0.1.0"