"""Reading the wall-clock time from the CMOS real-time clock."""

from __future__ import annotations

from stanix.ports import PortBus

CMOS_ADDRESS_PORT = 0x70
CMOS_DATA_PORT = 0x71
CMOS_REGISTER_A = 0x0A
CMOS_REGISTER_B = 0x0B
CMOS_STATUS_BIT = 0x80
CMOS_BINARY_MODE = 0x04

_MONTH_DAYS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


def is_leap(year: int) -> bool:
    if year % 4:
        return False
    if year % 400 and not year % 100:
        return False
    return True


def bcd_to_binary(value: int) -> int:
    return (value // 16) * 10 + (value & 0x0F)


def rtc_to_epoch(seconds: int, minutes: int, hours: int, day: int, month: int,
                 year: int) -> int:
    """Seconds since 1970 for an RTC reading whose year has two digits.

    Years above 90 belong to the 1900s, the others to the 2000s.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"invalid month {month}")
    year += 1900 if year > 90 else 2000

    days = day - 1
    for index, length in enumerate(_MONTH_DAYS[:month - 1]):
        days += 29 if index == 1 and is_leap(year) else length
    days += sum(366 if is_leap(y) else 365 for y in range(1970, year))
    return seconds + minutes * 60 + hours * 3600 + days * 86400


class Cmos:
    """The RTC registers reached through the CMOS address and data ports."""

    wait_limit = 100_000

    def __init__(self, bus: PortBus) -> None:
        self.bus = bus
        self.mode = 0

    def _read_raw(self, address: int) -> int:
        self.bus.out_byte(CMOS_ADDRESS_PORT, address)
        return self.bus.in_byte(CMOS_DATA_PORT)

    def read(self, register: int) -> int:
        """Read a register, decoding BCD unless the clock is in binary mode."""
        data = self._read_raw(register)
        if not self.mode & CMOS_BINARY_MODE:
            data = bcd_to_binary(data)
        return data

    def _wait_status(self, updating: bool) -> None:
        for _ in range(self.wait_limit):
            status = bool(self._read_raw(CMOS_REGISTER_A) & CMOS_STATUS_BIT)
            if status == updating:
                return
        raise TimeoutError("the real-time clock never changed its update status")

    def _wait(self) -> None:
        # catch the start of an update so the reading that follows is whole
        self._wait_status(updating=False)
        self._wait_status(updating=True)

    def current_time(self) -> int:
        """Read the clock and return seconds since 1970."""
        self._wait()
        self.mode = self._read_raw(CMOS_REGISTER_B)
        seconds = self.read(0x00)
        minutes = self.read(0x02)
        hours = self.read(0x04)
        day = self.read(0x07)
        month = self.read(0x08)
        year = self.read(0x09)
        return rtc_to_epoch(seconds, minutes, hours, day, month, year)