"""Barometer, IMU, magnetometer and servo drivers built on an abstract I2C bus and PWM channel."""