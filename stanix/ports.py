"""A bus of 16-bit I/O ports to which simulated devices can be attached."""

from __future__ import annotations

from typing import Callable, Optional

Reader = Callable[[], int]
Writer = Callable[[int], object]

_BYTE_MASK = 0xFF
_LONG_MASK = 0xFFFFFFFF


def _check_port(port: int) -> None:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port:#x} is outside the 16-bit I/O space")


class PortBus:
    """Dispatches port reads and writes to the device attached at each port.

    Reading a port with no device gives all ones, as a floating bus does;
    writing to such a port is ignored.
    """

    FLOATING_BYTE = _BYTE_MASK

    def __init__(self) -> None:
        self._devices: dict[int, tuple[Optional[Reader], Optional[Writer]]] = {}

    def attach(self, port: int, reader: Optional[Reader] = None,
               writer: Optional[Writer] = None) -> None:
        """Attach a device at ``port``; either side may be left out."""
        _check_port(port)
        self._devices[port] = (reader, writer)

    def _read(self, port: int, mask: int) -> int:
        _check_port(port)
        reader = self._devices.get(port, (None, None))[0]
        if reader is None:
            return mask
        return reader() & mask

    def _write(self, port: int, value: int, mask: int) -> None:
        _check_port(port)
        writer = self._devices.get(port, (None, None))[1]
        if writer is not None:
            writer(value & mask)

    def in_byte(self, port: int) -> int:
        return self._read(port, _BYTE_MASK)

    def out_byte(self, port: int, value: int) -> None:
        self._write(port, value, _BYTE_MASK)

    def in_long(self, port: int) -> int:
        return self._read(port, _LONG_MASK)

    def out_long(self, port: int, value: int) -> None:
        self._write(port, value, _LONG_MASK)