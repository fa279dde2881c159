"""Interrupt descriptor table gates and exception descriptions."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar, MutableSequence

IDT_ENTRIES = 256
GATE_PRESENT = 0x80
KERNEL_CODE_SELECTOR = 0x08
SYSCALL_VECTOR = 0x80
PAGE_FAULT = 14

ERROR_MESSAGES = (
    "divide by zero",
    "debug",
    "non maskable",
    "breakpoint",
    "overflow",
    "bound range exceeded",
    "invalid OPcode",
    "device not avalibe",
    "double fault",
    "Coprocessor segment overrun",
    "invalid tss",
    "segment not present",
    "stack segment fault",
    "general protection fault",
    "page fault",
    "not an error",
    "x87 floating point fault",
    "alginement check",
    "machine check",
    "SIMD floating point fault",
    "virtualization exception",
    "control protection exception",
)


@dataclass(frozen=True)
class IdtGate:
    """One 16-byte interrupt gate."""

    offset1: int = 0
    selector: int = 0
    ist: int = 0
    flags: int = 0
    offset2: int = 0
    offset3: int = 0
    reserved: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<HHBBHII")

    @property
    def offset(self) -> int:
        return self.offset1 | (self.offset2 << 16) | (self.offset3 << 32)

    @property
    def present(self) -> bool:
        return bool(self.flags & GATE_PRESENT)

    def pack(self) -> bytes:
        return self._FORMAT.pack(
            self.offset1, self.selector, self.ist, self.flags,
            self.offset2, self.offset3, self.reserved,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IdtGate":
        return cls(*cls._FORMAT.unpack(bytes(data[:cls._FORMAT.size])))


def new_idt() -> list[IdtGate]:
    """An IDT with every gate absent."""
    return [IdtGate() for _ in range(IDT_ENTRIES)]


def set_idt_gate(idt: MutableSequence[IdtGate], index: int, offset: int, flags: int) -> IdtGate:
    """Install a present kernel-code gate pointing at ``offset``."""
    if not 0 <= index < len(idt):
        raise ValueError(f"gate index {index} outside the table")
    gate = IdtGate(
        offset1=offset & 0xFFFF,
        selector=KERNEL_CODE_SELECTOR,
        ist=0,
        flags=(flags | GATE_PRESENT) & 0xFF,
        offset2=(offset >> 16) & 0xFFFF,
        offset3=(offset >> 32) & 0xFFFFFFFF,
        reserved=0,
    )
    idt[index] = gate
    return gate


def page_fault_info(cr2: int, err_code: int) -> str:
    """Explain a page fault from its faulting address and error code."""
    who = "user" if err_code & 0x04 else "OS"
    if err_code & 0x10:
        action = "execute"
    elif err_code & 0x02:
        action = "write"
    else:
        action = "read"
    present = "" if err_code & 0x01 else "non "
    return (
        f"page fault at address 0x{cr2:x}\n"
        f"{who} has trying to {action} a {present}present page\n"
    )


def describe_exception(err_type: int) -> str:
    """The name of a CPU exception vector."""
    if 0 <= err_type < len(ERROR_MESSAGES):
        return ERROR_MESSAGES[err_type]
    return "unkown fault"