"""Anonymous pipes built on a bounded byte ring buffer."""

from __future__ import annotations

import errno
from dataclasses import dataclass

from stanix.vfs import PollEvent, VfsError, VfsNode

PIPE_SIZE = 4096


class RingBuffer:
    """A bounded FIFO of bytes; reads and writes never block."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._data = bytearray()

    def read(self, count: int) -> bytes:
        """Take up to ``count`` bytes from the front."""
        chunk = bytes(self._data[:count])
        del self._data[:count]
        return chunk

    def write(self, data: bytes) -> int:
        """Append as much of ``data`` as fits; return how many bytes were taken."""
        taken = min(len(data), self.write_available())
        self._data.extend(data[:taken])
        return taken

    def read_available(self) -> int:
        return len(self._data)

    def write_available(self) -> int:
        return self.capacity - len(self._data)


class BrokenPipeError_(VfsError):
    """Writing to a pipe whose other end is closed."""

    def __init__(self) -> None:
        super().__init__(errno.EPIPE)


@dataclass
class _Pipe:
    ring: RingBuffer
    broken: bool = False


class PipeEnd(VfsNode):
    """One end of a pipe: readable or writable, not both."""

    def __init__(self, pipe: _Pipe, writer: bool) -> None:
        super().__init__(0)
        self.pipe = pipe
        self.is_writer = writer
        self.ref_count = 1

    def read(self, offset: int, count: int) -> bytes:
        if self.is_writer:
            raise self._unsupported_io()
        if self.pipe.broken:
            return b""
        return self.pipe.ring.read(count)

    def write(self, data: bytes, offset: int) -> int:
        if not self.is_writer:
            raise self._unsupported_io()
        if self.pipe.broken:
            raise BrokenPipeError_()
        return self.pipe.ring.write(data)

    def wait_check(self, events: int) -> int:
        ready = PollEvent(0)
        if self.pipe.broken:
            ready |= PollEvent.HUP
            if self.is_writer:
                ready |= PollEvent.ERR
        if events & PollEvent.IN and self.pipe.ring.read_available():
            ready |= PollEvent.IN
        if events & PollEvent.OUT and self.pipe.ring.write_available():
            ready |= PollEvent.OUT
        return ready

    def release(self) -> None:
        # the first end to close breaks the pipe, the second drops its buffer
        if self.pipe.broken:
            self.pipe.ring = RingBuffer(1)
            return
        self.pipe.broken = True


def create_pipe(size: int = PIPE_SIZE) -> tuple[PipeEnd, PipeEnd]:
    """Return the read end and write end of a new pipe."""
    pipe = _Pipe(RingBuffer(size))
    return PipeEnd(pipe, writer=False), PipeEnd(pipe, writer=True)