"""The 16550 UART on COM1, driven through a port bus."""

from __future__ import annotations

from stanix.ports import PortBus

SERIAL_PORT = 0x3F8
LINE_STATUS_THRE = 0x20
LOOPBACK_TEST_BYTE = 0xAE


class SerialError(OSError):
    """The UART did not pass its loopback test."""


class SerialPort:
    """A UART whose registers start at ``base``."""

    wait_limit = 100_000

    def __init__(self, bus: PortBus, base: int = SERIAL_PORT) -> None:
        self.bus = bus
        self.base = base

    def init(self) -> None:
        """Configure 38400 baud 8N1 with FIFOs and check the chip in loopback."""
        out = self.bus.out_byte
        base = self.base
        out(base + 1, 0x00)  # interrupts off
        out(base + 3, 0x80)  # divisor latch
        out(base + 0, 0x03)
        out(base + 1, 0x00)
        out(base + 3, 0x03)  # 8 bits, no parity, one stop bit
        out(base + 2, 0xC7)  # FIFO on, cleared, 14-byte threshold
        out(base + 4, 0x0B)
        out(base + 4, 0x1E)  # loopback
        out(base + 0, LOOPBACK_TEST_BYTE)
        if self.bus.in_byte(base + 0) != LOOPBACK_TEST_BYTE:
            raise SerialError("serial port failed its loopback test")
        out(base + 4, 0x0F)  # normal operation

    def write_char(self, char: str) -> None:
        """Wait for the transmitter to empty, then send one character."""
        value = ord(char)
        if value > 0xFF:
            raise ValueError(f"{char!r} does not fit in one byte")
        for _ in range(self.wait_limit):
            if self.bus.in_byte(self.base + 5) & LINE_STATUS_THRE:
                break
        else:
            raise TimeoutError("serial transmitter never became ready")
        self.bus.out_byte(self.base, value)

    def write(self, text: str) -> None:
        for char in text:
            self.write_char(char)