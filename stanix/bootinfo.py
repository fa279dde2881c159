"""Information handed over by the bootloader and its textual report."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class MemmapType(enum.IntEnum):
    """Kinds of region in the bootloader memory map."""

    USABLE = 0
    RESERVED = 1
    ACPI_RECLAIMABLE = 2
    ACPI_NVS = 3
    BAD_MEMORY = 4
    BOOTLOADER_RECLAIMABLE = 5
    KERNEL_AND_MODULES = 6
    FRAMEBUFFER = 7

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    MemmapType.USABLE: "usable",
    MemmapType.RESERVED: "reserved",
    MemmapType.ACPI_RECLAIMABLE: "acpi reclamable",
    MemmapType.ACPI_NVS: "acpi NVS",
    MemmapType.BAD_MEMORY: "bad memory",
    MemmapType.BOOTLOADER_RECLAIMABLE: "bootloader reclamable",
    MemmapType.KERNEL_AND_MODULES: "kernel and modules",
    MemmapType.FRAMEBUFFER: "framebuffer",
}


@dataclass(frozen=True)
class MemmapEntry:
    """One region of physical memory."""

    base: int
    length: int
    type: MemmapType


@dataclass
class BootInfo:
    """Responses gathered from the bootloader at start-up."""

    memmap: list[MemmapEntry] = field(default_factory=list)
    hhdm: int = 0
    kernel_physical_base: int = 0
    kernel_virtual_base: int = 0
    boot_time: int = 0
    stack_start: int = 0
    initrd_address: int = 0
    initrd_size: int = 0

    def total_memory(self) -> int:
        """Bytes in every memory map region that is not reserved."""
        return sum(entry.length for entry in self.memmap
                   if entry.type != MemmapType.RESERVED)

    def report(self) -> str:
        """The boot information as printed in the kernel log."""
        lines = [
            "info :",
            f"stack start : 0x{self.stack_start:x}",
            f"time at boot : {self.boot_time}",
            f"kernel loaded at Vaddress : {self.kernel_virtual_base:x}",
            f"                 Paddress : {self.kernel_physical_base:x}",
            "memmap:",
        ]
        for entry in self.memmap:
            lines.append(f"\tsegment of type {MemmapType(entry.type).description}")
            lines.append(f"\t\toffset : {entry.base:x}")
            lines.append(f"\t\tsize   : {entry.length}")
        lines.append(f"total memory amount : {self.total_memory() // (1024 * 1024)}MB")
        lines.append(
            f"initrd loaded at 0x{self.initrd_address:x} size : {self.initrd_size // 1024} KB"
        )
        return "\n".join(lines) + "\n"