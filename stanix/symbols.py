"""Resolving code addresses to symbol names for panic stack traces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class Symbol:
    """A named address in the kernel or a loaded module."""

    name: str
    value: int
    size: int = 0


class SymbolTable:
    """Kernel symbols plus symbols exported by modules above the kernel image."""

    def __init__(self, symbols: Iterable[Symbol], exported: Iterable[Symbol] = (),
                 kernel_end: int = 0) -> None:
        self.symbols = list(symbols)
        self.exported = list(exported)
        self.kernel_end = kernel_end

    def function_name(self, address: int) -> str:
        """The nearest symbol at or below ``address``, or an empty string."""
        best = 0
        name = ""
        candidates = list(self.symbols)
        if address > self.kernel_end:
            candidates.extend(self.exported)
        for symbol in candidates:
            if best < symbol.value <= address:
                best = symbol.value
                name = symbol.name
        return name

    def stack_trace(self, rip: int, frames: Iterable[int]) -> list[str]:
        """Trace lines for the faulting ``rip`` and each return address.

        The walk ends at the first zero return address, as a frame chain does.
        """
        lines = ["most recent call", f"<0x{rip:x}> {self.function_name(rip)}"]
        for address in frames:
            if not address:
                break
            lines.append(f"<0x{address:x}> {self.function_name(address)}")
        lines.append("older call")
        return lines