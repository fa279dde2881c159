"""Four-level x86_64 page tables kept in a simulated physical memory."""

from __future__ import annotations

import enum
from typing import Iterable, Optional, Sequence

from stanix.bootinfo import MemmapEntry, MemmapType

PAGE_SIZE = 0x1000
ENTRIES_PER_TABLE = 512
HIGHER_PDP_COUNT = 8

_U64 = (1 << 64) - 1
PAGING_ENTRY_ADDRESS = (~0xFFF & ~(0xFFF << 52)) & _U64

KERNEL_STACK_SIZE = 64 * 1024
KERNEL_STACK_TOP = 0xFFFFFFFFFFFFF000 - (10 * 512 * 512 * 512 * PAGE_SIZE)
KERNEL_STACK_BOTTOM = KERNEL_STACK_TOP - KERNEL_STACK_SIZE
USER_STACK_TOP = 0x80000000000
USER_STACK_SIZE = 64 * PAGE_SIZE
USER_STACK_BOTTOM = USER_STACK_TOP - USER_STACK_SIZE
USERSPACE_LIMIT = 0x7FFFFFFFFFFFF


def page_align_down(address: int) -> int:
    return address // PAGE_SIZE * PAGE_SIZE


def page_align_up(address: int) -> int:
    return (address + PAGE_SIZE - 1) // PAGE_SIZE * PAGE_SIZE


def page_div_up(size: int) -> int:
    return (size + PAGE_SIZE - 1) // PAGE_SIZE


class PageFlag(enum.IntFlag):
    """Bits of a page table entry."""

    PRESENT = 0x01
    WRITE = 0x02
    USER = 0x04
    WRITE_COMBINE = 1 << 7
    NO_EXE = 1 << 61
    READONLY_CPL0 = 0x01
    RW_CPL0 = 0x03
    READONLY_CPL3 = 0x05
    RW_CPL3 = 0x07


_HHDM_TYPES = frozenset({
    MemmapType.ACPI_NVS,
    MemmapType.ACPI_RECLAIMABLE,
    MemmapType.BOOTLOADER_RECLAIMABLE,
    MemmapType.FRAMEBUFFER,
    MemmapType.KERNEL_AND_MODULES,
    MemmapType.USABLE,
})


def _indices(virtual: int) -> tuple[int, int, int, int]:
    return (
        (virtual >> 39) & 0x1FF,
        (virtual >> 30) & 0x1FF,
        (virtual >> 21) & 0x1FF,
        (virtual >> 12) & 0x1FF,
    )


class PhysicalMemory:
    """A pool of physical pages, each of which may hold a page table."""

    def __init__(self, pages: int) -> None:
        if pages <= 0:
            raise ValueError("physical memory needs at least one page")
        self.pages = pages
        # lowest address is handed out first
        self._free = [index * PAGE_SIZE for index in reversed(range(pages))]
        self._free_set = set(self._free)
        self._tables: dict[int, list[int]] = {}

    @property
    def free_count(self) -> int:
        return len(self._free)

    def allocate_page(self) -> int:
        """Take a zeroed page and return its physical address."""
        if not self._free:
            raise MemoryError("out of physical pages")
        address = self._free.pop()
        self._free_set.discard(address)
        self._tables.pop(address, None)
        return address

    def free_page(self, address: int) -> None:
        if address % PAGE_SIZE or not 0 <= address < self.pages * PAGE_SIZE:
            raise ValueError(f"{address:#x} is not a page of this memory")
        if address in self._free_set:
            raise ValueError(f"page {address:#x} is already free")
        self._tables.pop(address, None)
        self._free.append(address)
        self._free_set.add(address)

    def _table(self, address: int) -> list[int]:
        table = self._tables.get(address)
        if table is None:
            table = self._tables[address] = [0] * ENTRIES_PER_TABLE
        return table


class AddressSpace:
    """A PML4 and the tables below it.

    The top eight PML4 entries are shared by every address space and are
    never freed when one is deleted.
    """

    def __init__(self, memory: PhysicalMemory,
                 higher_pdp: Optional[Sequence[int]] = None) -> None:
        if higher_pdp is None:
            higher_pdp = [0] * HIGHER_PDP_COUNT
        if len(higher_pdp) != HIGHER_PDP_COUNT:
            raise ValueError(f"expected {HIGHER_PDP_COUNT} higher PDP entries")
        self.memory = memory
        self.pml4 = memory.allocate_page()
        table = memory._table(self.pml4)
        table[ENTRIES_PER_TABLE - HIGHER_PDP_COUNT:] = [int(e) for e in higher_pdp]
        self._deleted = False

    def _walk(self, virtual: int) -> Optional[list[tuple[int, list[int], int]]]:
        path = []
        table_address = self.pml4
        for index in _indices(virtual):
            table = self.memory._table(table_address)
            if not table[index] & PageFlag.PRESENT:
                return None
            path.append((table_address, table, index))
            table_address = table[index] & PAGING_ENTRY_ADDRESS
        return path

    def map_page(self, physical: int, virtual: int, flags: int) -> None:
        """Map the page holding ``virtual`` to the page holding ``physical``."""
        *upper, pt_index = _indices(virtual)
        table_address = self.pml4
        for index in upper:
            table = self.memory._table(table_address)
            if not table[index] & PageFlag.PRESENT:
                table[index] = self.memory.allocate_page() | PageFlag.RW_CPL3
            table_address = table[index] & PAGING_ENTRY_ADDRESS
        pt = self.memory._table(table_address)
        pt[pt_index] = ((physical & ~0xFFF) | int(flags)) & _U64

    def unmap_page(self, virtual: int) -> None:
        """Remove a mapping and free every table it leaves empty."""
        path = self._walk(virtual)
        if path is None:
            return
        _, pt, pt_index = path[-1]
        pt[pt_index] = 0
        for (address, table, _), (_, parent, parent_index) in zip(
            reversed(path[1:]), reversed(path[:-1])
        ):
            if any(entry & PageFlag.PRESENT for entry in table):
                return
            self.memory.free_page(address)
            parent[parent_index] = 0

    def virt2phys(self, address: int) -> Optional[int]:
        """The physical address ``address`` maps to, or None if unmapped."""
        path = self._walk(address)
        if path is None:
            return None
        _, pt, pt_index = path[-1]
        return (pt[pt_index] & PAGING_ENTRY_ADDRESS) + (address & 0xFFF)

    def map_hhdm(self, memmap: Iterable[MemmapEntry], hhdm: int) -> None:
        """Map every non-reserved memory map region at ``hhdm`` above its base."""
        for entry in memmap:
            if entry.type not in _HHDM_TYPES:
                continue
            flags = PageFlag.RW_CPL0
            if entry.type == MemmapType.FRAMEBUFFER:
                flags |= PageFlag.WRITE_COMBINE
            physical = page_align_down(entry.base)
            virtual = page_align_down(entry.base + hhdm)
            for _ in range(page_div_up(entry.length)):
                self.map_page(physical, virtual, flags)
                physical += PAGE_SIZE
                virtual += PAGE_SIZE

    def map_kernel(self, physical_base: int, virtual_base: int, size: int) -> None:
        """Map ``size`` bytes of kernel image from its physical load address."""
        physical = page_align_down(physical_base)
        virtual = page_align_down(virtual_base)
        for _ in range(page_div_up(size)):
            self.map_page(physical, virtual, PageFlag.RW_CPL0)
            physical += PAGE_SIZE
            virtual += PAGE_SIZE

    def delete(self) -> None:
        """Free every table of this address space except the shared higher PDPs."""
        if self._deleted:
            raise RuntimeError("address space already deleted")
        memory = self.memory
        pml4 = memory._table(self.pml4)
        for pdp_entry in pml4[:ENTRIES_PER_TABLE - HIGHER_PDP_COUNT]:
            if not pdp_entry & PageFlag.PRESENT:
                continue
            pdp_address = pdp_entry & PAGING_ENTRY_ADDRESS
            for pd_entry in memory._table(pdp_address):
                if not pd_entry & PageFlag.PRESENT:
                    continue
                pd_address = pd_entry & PAGING_ENTRY_ADDRESS
                for pt_entry in memory._table(pd_address):
                    if pt_entry & PageFlag.PRESENT:
                        memory.free_page(pt_entry & PAGING_ENTRY_ADDRESS)
                memory.free_page(pd_address)
            memory.free_page(pdp_address)
        memory.free_page(self.pml4)
        self._deleted = True