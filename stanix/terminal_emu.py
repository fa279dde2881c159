"""Text terminal drawn with a PSF1 bitmap font on a framebuffer device."""

from __future__ import annotations

import enum
import errno
import struct
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from stanix.framebuffer import FramebufferRequest, draw_pixel
from stanix.vfs import NodeFlag, OpenFlag, Vfs, VfsError, VfsNode

PSF1_FONT_MAGIC = 0x0436
FONT_TYPE_PSF1 = 0x01
PSF1_HEADER_SIZE = 4

ANSI_COLORS = (
    0x000000,
    0xDD0000,
    0x00DD00,
    0xDDDD00,
    0x0000DD,
    0xDD00DD,
    0x00DDDD,
    0xC0C0C0,
)


@dataclass(frozen=True)
class Psf1Font:
    """A PSF1 font: one byte per glyph row, eight pixels wide."""

    mode: int
    char_size: int
    glyphs: bytes

    @classmethod
    def parse(cls, data: bytes) -> "Psf1Font":
        if len(data) < PSF1_HEADER_SIZE:
            raise ValueError("font too short for a psf1 header")
        magic, mode, char_size = struct.unpack_from("<HBB", data)
        if magic != PSF1_FONT_MAGIC:
            raise ValueError("not a psf1 font")
        return cls(mode, char_size, bytes(data[PSF1_HEADER_SIZE:]))


class TerminalRequest(enum.IntEnum):
    """ioctl requests understood by the terminal device."""

    WIDTH = 0x89798
    HEIGHT = 0x89146
    CURX = 0x89545
    CURY = 0x89504


class TerminalEmulator:
    """Cursor, colours and escape state of a framebuffer terminal."""

    def __init__(self, vfs: Vfs, framebuffer_dev: VfsNode, font: Psf1Font) -> None:
        self.vfs = vfs
        self.framebuffer_dev = framebuffer_dev
        self.font = font
        self.width = vfs.ioctl(framebuffer_dev, FramebufferRequest.WIDTH) // 8
        self.height = vfs.ioctl(framebuffer_dev, FramebufferRequest.HEIGHT) // (font.char_size + 1)
        self.x = 0
        self.y = 0
        self.ansi_esc_mode = 0
        self.font_color = 0xFFFFFF
        self.back_color = 0x000000

    def draw_char(self, char: str) -> None:
        """Draw one character or apply its control meaning."""
        size = self.font.char_size
        if char == "\n":
            self.x = 0
            self.y += size + 1
            if self.y // size + 1 >= self.height:
                self.vfs.ioctl(self.framebuffer_dev, FramebufferRequest.SCROLL, size + 1)
                self.y -= size + 1
            return
        if char == "\t":
            self.x = (self.x // 32 + 2) * 32
            return
        if char == "\x1b":
            self.ansi_esc_mode = 1
            return
        if char == "\b":
            if self.x > 0:
                self.x -= 8
            return

        if self.ansi_esc_mode:
            if char == "m":
                if self.ansi_esc_mode == 3:
                    self.font_color = 0xFFFFFF
                self.ansi_esc_mode = 0
                return
            if self.ansi_esc_mode == 5:
                index = ord(char) - ord("0")
                if not 0 <= index < len(ANSI_COLORS):
                    return
                self.font_color = ANSI_COLORS[index]
            self.ansi_esc_mode += 1
            return

        start = (ord(char) & 0xFF) * size
        glyph = self.font.glyphs[start:start + size].ljust(size, b"\0")
        for row, bits in enumerate(glyph):
            for col in range(8):
                color = self.font_color if (bits >> (7 - col)) & 1 else self.back_color
                draw_pixel(self.vfs, self.framebuffer_dev, self.x + col, self.y + row, color)
        self.x += 8


class TerminalDevice(VfsNode):
    """Device node printing written bytes on a terminal emulator."""

    def __init__(self, emulator: TerminalEmulator) -> None:
        super().__init__(NodeFlag.DEV | NodeFlag.CHAR | NodeFlag.TTY)
        self.emulator = emulator

    def write(self, data: bytes, offset: int) -> int:
        for byte in data:
            self.emulator.draw_char(chr(byte))
        return len(data)

    def ioctl(self, request: int, arg: Any) -> Any:
        emu = self.emulator
        values = {
            TerminalRequest.WIDTH: emu.width,
            TerminalRequest.HEIGHT: emu.height,
            TerminalRequest.CURX: emu.x,
            TerminalRequest.CURY: emu.y,
        }
        if request in values:
            return values[request]
        raise VfsError(errno.EINVAL)


def init_terminal_emulator(
    vfs: Vfs, config: Mapping[str, Mapping[str, str]]
) -> Optional[TerminalDevice]:
    """Create /dev/tty0 from the ``terminal_emulator`` section of ``config``.

    Returns None when the section does not enable the emulator.
    """
    section = config.get("terminal_emulator", {})
    activate = section.get("activate")
    if activate is None:
        raise KeyError("terminal_emulator.activate")
    if activate != "true":
        return None

    fb_path = section.get("framebuffer")
    if fb_path is None:
        raise KeyError("terminal_emulator.framebuffer")
    fb_dev = vfs.open(fb_path, OpenFlag.WRITEONLY)
    if fb_dev is None:
        raise VfsError(errno.ENOENT, f"cannot open device {fb_path}")

    font_path = section.get("font") or section.get("font.path")
    if font_path is None:
        raise KeyError("terminal_emulator.font")
    font_file = vfs.open(font_path, OpenFlag.READONLY)
    if font_file is None:
        raise VfsError(errno.ENOENT, f"cannot open file {font_path}")
    try:
        data = vfs.read(font_file, 0, font_file.size)
        if len(data) != font_file.size:
            raise VfsError(errno.EIO, f"cannot read {font_path}")
    finally:
        vfs.close(font_file)

    font = Psf1Font.parse(data)
    device = TerminalDevice(TerminalEmulator(vfs, fb_dev, font))
    vfs.mount("/dev/tty0", device)
    device.write(b"[infos] PMM, VMM vfs tmpFS and other aready init \n", 0)
    return device