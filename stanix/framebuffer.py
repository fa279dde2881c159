"""Linear framebuffers exposed as /dev/fbN devices."""

from __future__ import annotations

import enum
import errno
from dataclasses import dataclass, field
from typing import Any, Iterable

from stanix.vfs import NodeFlag, Vfs, VfsError, VfsNode

MAX_FRAMEBUFFERS = 100


class FramebufferRequest(enum.IntEnum):
    """ioctl requests understood by framebuffer devices."""

    WIDTH = 0x01
    HEIGHT = 0x02
    BPP = 0x03
    RM = 0x04
    RS = 0x05
    GM = 0x06
    GS = 0x07
    BM = 0x08
    BS = 0x09
    DRAW_PIXEL = 0x0A
    SCROLL = 0x0B


@dataclass
class Framebuffer:
    """Geometry, pixel format and memory of one framebuffer."""

    width: int
    height: int
    pitch: int
    bpp: int = 32
    red_mask_size: int = 8
    red_mask_shift: int = 16
    green_mask_size: int = 8
    green_mask_shift: int = 8
    blue_mask_size: int = 8
    blue_mask_shift: int = 0
    memory: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self) -> None:
        if not self.memory:
            self.memory = bytearray(self.size)

    @property
    def size(self) -> int:
        return self.width * self.height * (self.bpp // 8)

    def scroll(self, rows: int) -> None:
        """Move the picture up by ``rows`` pixel rows of 32-bit pixels."""
        start = rows * self.width * 4
        length = (self.width * self.height - rows * self.width) * 4
        if length <= 0:
            return
        self.memory[0:length] = self.memory[start:start + length]


class FramebufferDevice(VfsNode):
    """Device node writing straight into a framebuffer."""

    def __init__(self, framebuffer: Framebuffer) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.BLOCK)
        self.framebuffer = framebuffer

    def write(self, data: bytes, offset: int) -> int:
        size = self.framebuffer.size
        count = len(data)
        if offset + count > size:
            if offset > size:
                return 0
            count = size - offset
        self.framebuffer.memory[offset:offset + count] = data[:count]
        return count

    def ioctl(self, request: int, arg: Any) -> Any:
        fb = self.framebuffer
        values = {
            FramebufferRequest.HEIGHT: fb.height,
            FramebufferRequest.WIDTH: fb.width,
            FramebufferRequest.BPP: fb.bpp,
            FramebufferRequest.RM: fb.red_mask_size,
            FramebufferRequest.RS: fb.red_mask_shift,
            FramebufferRequest.GM: fb.green_mask_size,
            FramebufferRequest.GS: fb.green_mask_shift,
            FramebufferRequest.BM: fb.blue_mask_size,
            FramebufferRequest.BS: fb.blue_mask_shift,
        }
        if request in values:
            return values[request]
        if request == FramebufferRequest.SCROLL:
            fb.scroll(int(arg))
            return 0
        raise VfsError(errno.EINVAL)


def draw_pixel(vfs: Vfs, device: VfsNode, x: int, y: int, color: int) -> None:
    """Write one 32-bit pixel at (x, y)."""
    fb = device.framebuffer  # type: ignore[attr-defined]
    location = y * fb.pitch + x * 4
    vfs.write(device, (color & 0xFFFFFFFF).to_bytes(4, "little"), location)


def init_framebuffers(vfs: Vfs, framebuffers: Iterable[Framebuffer]) -> list[FramebufferDevice]:
    """Mount each framebuffer as /dev/fbN; at most 100 are created."""
    devices = []
    for index, fb in enumerate(framebuffers):
        if index >= MAX_FRAMEBUFFERS:
            break
        device = FramebufferDevice(fb)
        vfs.mount(f"/dev/fb{index}", device)
        devices.append(device)
    return devices