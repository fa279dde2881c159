import errno

import pytest

from stanix.pipe import BrokenPipeError_, RingBuffer, create_pipe
from stanix.vfs import PollEvent, Vfs, VfsError


def test_ring_buffer_fifo_and_capacity():
    ring = RingBuffer(4)
    assert ring.write(b"abcdef") == 4
    assert ring.write_available() == 0
    assert ring.read(2) == b"ab"
    assert ring.write(b"xyz") == 2
    assert ring.read(10) == b"cdxy"
    assert ring.read_available() == 0


def test_ring_buffer_rejects_bad_capacity():
    with pytest.raises(ValueError):
        RingBuffer(0)


def test_pipe_round_trip():
    vfs = Vfs()
    read_end, write_end = create_pipe()
    assert vfs.write(write_end, b"hello", 0) == 5
    assert vfs.read(read_end, 0, 5) == b"hello"
    assert vfs.read(read_end, 0, 5) == b""


def test_pipe_write_limited_by_size():
    read_end, write_end = create_pipe(8)
    assert write_end.write(b"0123456789", 0) == 8
    assert read_end.read(0, 100) == b"01234567"


def test_wrong_direction_raises_ebadf():
    read_end, write_end = create_pipe()
    with pytest.raises(VfsError) as info:
        read_end.write(b"x", 0)
    assert info.value.errno == errno.EBADF
    with pytest.raises(VfsError):
        write_end.read(0, 1)


def test_wait_check_tracks_readiness():
    read_end, write_end = create_pipe(4)
    assert read_end.wait_check(PollEvent.IN) == 0
    assert write_end.wait_check(PollEvent.OUT) == PollEvent.OUT
    write_end.write(b"abcd", 0)
    assert read_end.wait_check(PollEvent.IN) == PollEvent.IN
    assert write_end.wait_check(PollEvent.OUT) == 0


def test_closing_writer_breaks_pipe_for_reader():
    vfs = Vfs()
    read_end, write_end = create_pipe()
    write_end.write(b"left", 0)
    vfs.close(write_end)
    assert read_end.wait_check(PollEvent.IN) & PollEvent.HUP
    assert vfs.read(read_end, 0, 4) == b""


def test_closing_reader_breaks_writer():
    vfs = Vfs()
    read_end, write_end = create_pipe()
    vfs.close(read_end)
    ready = write_end.wait_check(PollEvent.OUT)
    assert ready & PollEvent.HUP and ready & PollEvent.ERR
    with pytest.raises(BrokenPipeError_) as info:
        vfs.write(write_end, b"x", 0)
    assert info.value.errno == errno.EPIPE