"""The 8259 PIC pair and dispatch of hardware interrupts to handlers."""

from __future__ import annotations

from typing import Callable, Optional

from stanix.ports import PortBus

PIC1 = 0x20
PIC2 = 0xA0
PIC1_COMMAND = PIC1
PIC1_DATA = PIC1 + 1
PIC2_COMMAND = PIC2
PIC2_DATA = PIC2 + 1

ICW1_ICW4 = 0x01
ICW1_SINGLE = 0x02
ICW1_INTERVAL4 = 0x04
ICW1_LEVEL = 0x08
ICW1_INIT = 0x10

ICW4_8086 = 0x01
ICW4_AUTO = 0x02
ICW4_BUF_SLAVE = 0x08
ICW4_BUF_MASTER = 0x0C
ICW4_SFNM = 0x10

PIC_APIC = 0x01
PIC_PIC = 0x02

PIC_EOI = 0x20
IRQ_COUNT = 16
IRQ_VECTOR_BASE = 32
SPURIOUS_IRQS = (7, 15)

IrqHandler = Callable[[int], Optional[bool]]


def _check_irq(irq: int) -> None:
    if not 0 <= irq < IRQ_COUNT:
        raise ValueError(f"irq {irq} out of range")


class Pic:
    """A master and slave 8259 reached through a port bus."""

    kind = PIC_PIC

    def __init__(self, bus: PortBus) -> None:
        self.bus = bus
        self.active = False

    def init(self) -> None:
        """Remap the PICs to vectors 32-47 and unmask every line."""
        out = self.bus.out_byte
        out(PIC1_COMMAND, ICW1_INIT | ICW1_ICW4)
        out(PIC2_COMMAND, ICW1_INIT | ICW1_ICW4)
        out(PIC1_DATA, IRQ_VECTOR_BASE)
        out(PIC2_DATA, IRQ_VECTOR_BASE + 8)
        out(PIC1_DATA, 4)  # slave sits on line 2
        out(PIC2_DATA, 2)  # cascade identity
        out(PIC1_DATA, ICW4_8086)
        out(PIC2_DATA, ICW4_8086)
        out(PIC1_DATA, 0x00)
        out(PIC2_DATA, 0x00)
        self.active = True
        for irq in SPURIOUS_IRQS:
            self.unmask(irq)

    @staticmethod
    def _line(irq: int) -> tuple[int, int]:
        _check_irq(irq)
        if irq < 8:
            return PIC1_DATA, irq
        return PIC2_DATA, irq - 8

    def mask(self, irq: int) -> None:
        port, bit = self._line(irq)
        value = self.bus.in_byte(port) | (1 << bit)
        self.bus.out_byte(port, value)

    def unmask(self, irq: int) -> None:
        port, bit = self._line(irq)
        value = self.bus.in_byte(port) & ~(1 << bit)
        self.bus.out_byte(port, value)

    def eoi(self, irq: int) -> None:
        _check_irq(irq)
        if irq >= 8:
            self.bus.out_byte(PIC2_COMMAND, PIC_EOI)
        self.bus.out_byte(PIC1_COMMAND, PIC_EOI)


class IrqController:
    """Routes interrupt lines to handlers and acknowledges them.

    A handler receives the irq number; returning True tells the controller
    that the handler already sent the end-of-interrupt itself.
    """

    def __init__(self, pic: Pic) -> None:
        self.pic = pic
        self.handlers: list[Optional[IrqHandler]] = [None] * IRQ_COUNT

    def _chip_ready(self) -> bool:
        return self.pic.active and self.pic.kind == PIC_PIC

    def generic_map(self, handler: IrqHandler, irq: int) -> None:
        _check_irq(irq)
        self.handlers[irq] = handler
        if self._chip_ready():
            self.pic.unmask(irq)

    def mask(self, irq: int) -> None:
        _check_irq(irq)
        if self._chip_ready():
            self.pic.mask(irq)

    def eoi(self, irq: int) -> None:
        _check_irq(irq)
        if self._chip_ready():
            self.pic.eoi(irq)

    def handle(self, irq: int) -> None:
        _check_irq(irq)
        handler = self.handlers[irq]
        acknowledged = bool(handler(irq)) if handler is not None else False
        if not acknowledged:
            self.eoi(irq)