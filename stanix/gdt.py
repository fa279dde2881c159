"""Global descriptor table segments and the task state segment."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import ClassVar

from stanix.paging import KERNEL_STACK_TOP

GDT_SEGMENT_ACCESS_ACCESS = 0x01
GDT_SEGMENT_ACCESS_RW = 0x02
GDT_SEGMENT_ACCESS_DC = 0x04
GDT_SEGMENT_ACCESS_EXECUTABLE = 0x08
GDT_SEGMENT_ACCESS_S = 0x10
GDT_SEGMENT_ACCESS_DPL_KERNEL = 0x00
GDT_SEGMENT_ACCESS_DPL_USER = 0x60
GDT_SEGMENT_ACCESS_PRESENT = 0x80

GDT_SEGMENT_ACCESS_KERNEL = (
    GDT_SEGMENT_ACCESS_ACCESS
    | GDT_SEGMENT_ACCESS_PRESENT
    | GDT_SEGMENT_ACCESS_DPL_KERNEL
    | GDT_SEGMENT_ACCESS_RW
    | GDT_SEGMENT_ACCESS_S
)
GDT_SEGMENT_ACCESS_USER = (
    GDT_SEGMENT_ACCESS_ACCESS
    | GDT_SEGMENT_ACCESS_PRESENT
    | GDT_SEGMENT_ACCESS_DPL_USER
    | GDT_SEGMENT_ACCESS_RW
    | GDT_SEGMENT_ACCESS_S
)

USER_CODE_ACCESS = 0xFA
USER_DATA_ACCESS = 0xF2
TSS_ACCESS = 0x89

KERNEL_CODE_SELECTOR = 0x08
KERNEL_DATA_SELECTOR = 0x10
TSS_SELECTOR = 0x28

GDT_ENTRIES = 7

_TSS_FORMAT = struct.Struct("<7I22Q")
TSS_SIZE = _TSS_FORMAT.size


@dataclass(frozen=True)
class GdtSegment:
    """One 8-byte segment descriptor."""

    limit: int = 0
    base1: int = 0
    base2: int = 0
    access: int = 0
    flags: int = 0
    base3: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<HHBBBB")

    @property
    def base(self) -> int:
        return self.base1 | (self.base2 << 16) | (self.base3 << 24)

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.limit, self.base1, self.base2, self.access, self.flags, self.base3
        )

    @classmethod
    def unpack(cls, data: bytes) -> "GdtSegment":
        return cls(*cls._FORMAT.unpack(bytes(data[:cls._FORMAT.size])))


def create_gdt_segment(base: int, limit: int, access: int, flags: int) -> GdtSegment:
    """Build a descriptor; the flags nibble takes the upper half of the flags byte.

    Only the low 16 bits of the limit are kept: the flags byte holds the
    given flags and nothing of the limit.
    """
    return GdtSegment(
        limit=limit & 0xFFFF,
        base1=base & 0xFFFF,
        base2=(base >> 16) & 0xFF,
        access=access & 0xFF,
        flags=(flags << 4) & 0xF0,
        base3=(base >> 24) & 0xFF,
    )


def build_gdt(tss_address: int, tss_size: int = TSS_SIZE) -> list[GdtSegment]:
    """The kernel GDT: null, kernel code/data, user code/data and a two-slot TSS."""
    high = ((tss_address >> 32) & 0xFFFFFFFF).to_bytes(4, "little") + bytes(4)
    return [
        create_gdt_segment(0, 0, 0, 0),
        create_gdt_segment(0, 0, GDT_SEGMENT_ACCESS_KERNEL | GDT_SEGMENT_ACCESS_EXECUTABLE, 0x02),
        create_gdt_segment(0, 0, GDT_SEGMENT_ACCESS_KERNEL, 0x00),
        create_gdt_segment(0, 0, USER_CODE_ACCESS, 0x02),
        create_gdt_segment(0, 0, USER_DATA_ACCESS, 0x00),
        create_gdt_segment(tss_address & 0xFFFFFFFF, tss_size - 1, TSS_ACCESS, 0),
        GdtSegment.unpack(high),
    ]


def pack_gdt(segments: list[GdtSegment]) -> bytes:
    """The table as it sits in memory."""
    return b"".join(segment.pack() for segment in segments)


@dataclass
class Tss:
    """The 64-bit task state segment."""

    reserved: int = 0
    rspl0: int = 0
    rsph0: int = 0
    rspl1: int = 0
    rsph1: int = 0
    rspl2: int = 0
    rsph2: int = 0
    bloat: list[int] = field(default_factory=lambda: [0] * 22)

    @classmethod
    def initial(cls) -> "Tss":
        """A zeroed TSS whose ring 0 stack is the kernel stack top."""
        tss = cls()
        tss.set_kernel_stack(KERNEL_STACK_TOP)
        return tss

    @property
    def kernel_stack(self) -> int:
        return (self.rsph0 << 32) | self.rspl0

    def set_kernel_stack(self, stack: int) -> None:
        self.rsph0 = (stack >> 32) & 0xFFFFFFFF
        self.rspl0 = stack & 0xFFFFFFFF

    def pack(self) -> bytes:
        if len(self.bloat) != 22:
            raise ValueError("the TSS tail holds exactly 22 quadwords")
        return _TSS_FORMAT.pack(
            self.reserved, self.rspl0, self.rsph0, self.rspl1,
            self.rsph1, self.rspl2, self.rsph2, *self.bloat,
        )