"""Terminal line discipline, tty devices and pseudo-terminal pairs."""

from __future__ import annotations

import copy
import enum
import errno
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from stanix.pipe import RingBuffer
from stanix.vfs import NodeFlag, PollEvent, Vfs, VfsError, VfsNode

TTY_BUFFER_SIZE = 4096
NCCS = 32


class IFlag(enum.IntFlag):
    """Input processing flags."""

    ISTRIP = 0o000040
    INLCR = 0o000100
    IGNCR = 0o000200
    ICRNL = 0o000400
    IUCLC = 0o001000
    IMAXBEL = 0o020000


class OFlag(enum.IntFlag):
    """Output processing flags."""

    OPOST = 0o000001
    OLCUC = 0o000002
    ONLCR = 0o000004
    OCRNL = 0o000010
    ONOCR = 0o000020
    ONLRET = 0o000040


class LFlag(enum.IntFlag):
    """Local mode flags."""

    ISIG = 0o000001
    ICANON = 0o000002
    ECHO = 0o000010
    ECHOE = 0o000020
    ECHOK = 0o000040
    ECHONL = 0o000100
    IEXTEN = 0o100000


class ControlChar(enum.IntEnum):
    """Indexes into the control character table."""

    VINTR = 0
    VQUIT = 1
    VERASE = 2
    VKILL = 3
    VEOF = 4
    VTIME = 5
    VMIN = 6
    VSTART = 8
    VSTOP = 9
    VSUSP = 10
    VEOL = 11


def _default_cc() -> list[int]:
    cc = [0] * NCCS
    cc[ControlChar.VEOF] = 0x04
    cc[ControlChar.VERASE] = 127
    cc[ControlChar.VINTR] = 0x03
    cc[ControlChar.VQUIT] = 0x22
    cc[ControlChar.VSUSP] = 0x20
    cc[ControlChar.VMIN] = 1
    return cc


@dataclass
class Termios:
    """Terminal settings; the defaults are those of a freshly created tty."""

    iflag: int = IFlag.ICRNL | IFlag.IMAXBEL
    oflag: int = OFlag.OPOST | OFlag.ONLCR | OFlag.ONLRET
    cflag: int = 0
    lflag: int = (
        LFlag.ECHONL | LFlag.ECHOK | LFlag.ECHOE | LFlag.ECHO | LFlag.ICANON | LFlag.IEXTEN
    )
    cc: list[int] = field(default_factory=_default_cc)


@dataclass
class WinSize:
    """Terminal window size."""

    rows: int = 0
    cols: int = 0
    xpixel: int = 0
    ypixel: int = 0


class TtyRequest(enum.IntEnum):
    """ioctl requests understood by tty devices."""

    TIOCGETA = 0x5401
    TIOCSETA = 0x5402
    TIOCSETAW = 0x5403
    TIOCSETAF = 0x5404
    TIOCGPGRP = 0x540F
    TIOCSPGRP = 0x5410
    TIOCGWINSZ = 0x5413
    TIOCSWINSZ = 0x5414


class Tty:
    """Line discipline between a character sink and an input queue."""

    def __init__(self, output: Callable[[str], object]) -> None:
        self._sink = output
        self.input_buffer = RingBuffer(TTY_BUFFER_SIZE)
        self.termios = Termios()
        self.size = WinSize()
        self.column = 0
        self.canon_buf: list[int] = []
        self.fg_proc: Optional[int] = None
        self.unconnected = False

    def output(self, char: str) -> None:
        """Send one character to the sink, applying output processing."""
        c = ord(char) & 0xFF
        oflag = self.termios.oflag
        if oflag & OFlag.OPOST:
            if oflag & OFlag.OLCUC and ord("a") <= c <= ord("z"):
                c -= 32
            if oflag & OFlag.ONLCR and c == 10:
                self.output("\r")
            if oflag & OFlag.OCRNL and c == 13:
                c = 10
            if oflag & OFlag.ONOCR and c == 13 and self.column == 0:
                return
        if c == 13 or (c == 10 and oflag & OFlag.ONLRET):
            self.column = 0
        else:
            self.column += 1
        self._sink(chr(c))

    def input(self, char: str) -> None:
        """Feed one character typed at the terminal."""
        c = ord(char) & 0xFF
        t = self.termios
        iflag = t.iflag
        if iflag & IFlag.INLCR and c == 10:
            c = 13
        if iflag & IFlag.IGNCR and c == 13:
            return
        if iflag & IFlag.ICRNL and c == 13:
            c = 10
        if iflag & IFlag.IUCLC and ord("A") <= c <= ord("Z"):
            c += 32
        if iflag & IFlag.ISTRIP:
            c &= 0x7F

        lflag = t.lflag
        cc = t.cc
        if lflag & LFlag.ICANON:
            if lflag & LFlag.ECHO:
                if c == cc[ControlChar.VERASE] and lflag & LFlag.ECHOE:
                    if self.canon_buf:
                        for echo in "\b \b":
                            self.output(echo)
                else:
                    self.output(chr(c))
            elif c == 10 and lflag & LFlag.ECHONL:
                self.output("\n")

            if lflag & LFlag.IEXTEN:
                if c == cc[ControlChar.VERASE]:
                    if self.canon_buf:
                        self.canon_buf.pop()
                    return
                if c == cc[ControlChar.VKILL]:
                    self.canon_buf.clear()
                    return

            self.canon_buf.append(c)
            if c in (10, cc[ControlChar.VEOL], cc[ControlChar.VEOF]):
                line = bytes(self.canon_buf)
                if self.input_buffer.write(line) < len(line) and iflag & IFlag.IMAXBEL:
                    self.output("\a")
                self.canon_buf.clear()
            return

        if lflag & LFlag.ECHO:
            self.output(chr(c))
        if self.input_buffer.write(bytes([c])) == 0 and iflag & IFlag.IMAXBEL:
            self.output("\a")


class TtyNode(VfsNode):
    """The device node of a tty."""

    def __init__(self, tty: Tty) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.CHAR | NodeFlag.TTY)
        self.tty = tty

    def read(self, offset: int, count: int) -> bytes:
        data = self.tty.input_buffer.read(count)
        termios = self.tty.termios
        if termios.lflag & LFlag.ICANON and data and data[-1] == termios.cc[ControlChar.VEOF]:
            data = data[:-1]
        return data

    def write(self, data: bytes, offset: int) -> int:
        for byte in data:
            self.tty.output(chr(byte))
        return len(data)

    def wait_check(self, events: int) -> int:
        ready = PollEvent(0)
        if events & PollEvent.HUP and self.tty.unconnected:
            ready |= PollEvent.HUP
        if events & PollEvent.IN and self.tty.input_buffer.read_available():
            ready |= PollEvent.IN
        if events & PollEvent.OUT:
            ready |= PollEvent.OUT
        return ready

    def ioctl(self, request: int, arg: Any) -> Any:
        tty = self.tty
        if request == TtyRequest.TIOCGETA:
            return copy.deepcopy(tty.termios)
        if request in (TtyRequest.TIOCSETA, TtyRequest.TIOCSETAF, TtyRequest.TIOCSETAW):
            tty.termios = copy.deepcopy(arg)
            return 0
        if request == TtyRequest.TIOCGPGRP:
            if tty.fg_proc is None:
                raise VfsError(errno.EINVAL)
            return tty.fg_proc
        if request == TtyRequest.TIOCSPGRP:
            if not isinstance(arg, int) or arg <= 0:
                raise VfsError(errno.ESRCH)
            tty.fg_proc = arg
            return 0
        if request == TtyRequest.TIOCSWINSZ:
            tty.size = copy.copy(arg)
            return 0
        if request == TtyRequest.TIOCGWINSZ:
            return copy.copy(tty.size)
        raise VfsError(errno.EINVAL)


class PtyMaster(VfsNode):
    """The controlling side of a pseudo-terminal."""

    def __init__(self, tty: Tty, slave: TtyNode) -> None:
        super().__init__(0)
        self.tty = tty
        self.slave = slave
        self.output_buffer = RingBuffer(TTY_BUFFER_SIZE)
        self.ref_count = 1
        self._idle_refs = 1

    def _slave_unused(self) -> bool:
        return self.slave.ref_count <= self._idle_refs

    def read(self, offset: int, count: int) -> bytes:
        if self._slave_unused() and not self.output_buffer.read_available():
            raise VfsError(errno.EIO)
        return self.output_buffer.read(count)

    def write(self, data: bytes, offset: int) -> int:
        for byte in data:
            self.tty.input(chr(byte))
        return len(data)

    def wait_check(self, events: int) -> int:
        ready = PollEvent(0)
        if events & PollEvent.HUP and self._slave_unused():
            ready |= PollEvent.HUP
        if events & PollEvent.IN and self.output_buffer.read_available():
            ready |= PollEvent.IN
        if events & PollEvent.OUT:
            ready |= PollEvent.OUT
        return ready


def new_tty(output: Callable[[str], object]) -> TtyNode:
    """Create a tty writing to ``output`` and return its device node."""
    return TtyNode(Tty(output))


_pty_counts: "weakref.WeakKeyDictionary[Vfs, int]" = weakref.WeakKeyDictionary()


def new_pty(vfs: Vfs) -> tuple[int, PtyMaster, TtyNode]:
    """Create a pseudo-terminal, mount its slave on /dev/pts/N and return (N, master, slave)."""
    holder: list[PtyMaster] = []

    def to_master(char: str) -> None:
        holder[0].output_buffer.write(bytes([ord(char) & 0xFF]))

    slave = new_tty(to_master)
    master = PtyMaster(slave.tty, slave)
    holder.append(master)

    index = _pty_counts.get(vfs, 0)
    try:
        vfs.mount(f"/dev/pts/{index}", slave)
    except VfsError as exc:
        raise VfsError(errno.ENOENT) from exc
    slave.ref_count += 1
    master._idle_refs = slave.ref_count
    _pty_counts[vfs] = index + 1
    return index, master, slave