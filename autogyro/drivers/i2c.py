"""Blocking I2C bus interface and register-level access to bus devices."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class I2CError(Exception):
    """A transfer on the I2C bus failed."""


@runtime_checkable
class I2CBus(Protocol):
    """A blocking I2C bus master."""

    def write(self, addr: int, data: bytes) -> None:
        """Write ``data`` to the device at ``addr``; raise I2CError on failure."""

    def write_read(self, addr: int, data: bytes, length: int) -> bytes:
        """Write ``data``, then read ``length`` bytes back; raise I2CError on failure."""


class RegisterDevice:
    """A device on an I2C bus addressed through 8-bit registers."""

    def __init__(self, bus: I2CBus, addr: int) -> None:
        self.bus = bus
        self.addr = addr

    def read_register(self, reg: int) -> int:
        """Read one register."""
        return self.read_registers(reg, 1)[0]

    def write_register(self, reg: int, value: int) -> None:
        """Write one register."""
        self.bus.write(self.addr, bytes((reg, value)))

    def read_registers(self, start_reg: int, length: int) -> bytes:
        """Read ``length`` consecutive registers starting at ``start_reg``."""
        data = bytes(self.bus.write_read(self.addr, bytes((start_reg,)), length))
        if len(data) != length:
            raise I2CError(
                f"device 0x{self.addr:02x} returned {len(data)} bytes, expected {length}"
            )
        return data