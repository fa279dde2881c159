"""Simple character devices and the /dev tree."""

from __future__ import annotations

import sys
from typing import Callable, Optional

from stanix.tmpfs import new_tmpfs
from stanix.vfs import NodeFlag, Vfs, VfsError, VfsNode


class ZeroDevice(VfsNode):
    """/dev/zero: reads give zero bytes."""

    def __init__(self) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.CHAR | NodeFlag.BLOCK)

    def read(self, offset: int, count: int) -> bytes:
        return bytes(count)


class NullDevice(VfsNode):
    """/dev/null: writes are discarded, reads report zeroed data."""

    def __init__(self) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.CHAR)

    def read(self, offset: int, count: int) -> bytes:
        return bytes(count)

    def write(self, data: bytes, offset: int) -> int:
        return len(data)


class ConsoleDevice(VfsNode):
    """/dev/console: every byte written goes to a character sink."""

    def __init__(self, sink: Callable[[str], object]) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.CHAR | NodeFlag.TTY)
        self.sink = sink

    def write(self, data: bytes, offset: int) -> int:
        for byte in data:
            self.sink(chr(byte))
        return len(data)


def init_devices(vfs: Vfs, console_sink: Optional[Callable[[str], object]] = None) -> None:
    """Mount a tmpfs on /dev and create zero, console, null and the pts directory."""
    if console_sink is None:
        console_sink = sys.stdout.write

    vfs.mount("/dev", new_tmpfs())
    vfs.mount("/dev/zero", ZeroDevice())
    try:
        vfs.mount("/dev/console", ConsoleDevice(console_sink))
    except VfsError:
        # the system can run without a console device
        pass
    vfs.mount("/dev/null", NullDevice())
    vfs.mkdir("/dev/pts", 0x555)