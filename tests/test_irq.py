import pytest

from stanix.irq import (
    ICW1_ICW4,
    ICW1_INIT,
    IrqController,
    PIC1_COMMAND,
    PIC1_DATA,
    PIC2_COMMAND,
    PIC2_DATA,
    PIC_EOI,
    Pic,
)
from stanix.ports import PortBus


class FakeChips:
    def __init__(self):
        self.log = []
        self.data = {PIC1_DATA: 0, PIC2_DATA: 0}
        self.bus = PortBus()
        for port in (PIC1_COMMAND, PIC2_COMMAND):
            self.bus.attach(port, writer=self._writer(port))
        for port in (PIC1_DATA, PIC2_DATA):
            self.bus.attach(port, reader=self._reader(port), writer=self._writer(port))

    def _writer(self, port):
        def write(value):
            self.log.append((port, value))
            if port in self.data:
                self.data[port] = value
        return write

    def _reader(self, port):
        return lambda: self.data[port]

    def writes(self, port):
        return [value for p, value in self.log if p == port]


@pytest.fixture
def chips():
    return FakeChips()


def test_init_sequence(chips):
    pic = Pic(chips.bus)
    pic.init()
    assert pic.active
    assert chips.writes(PIC1_COMMAND) == [ICW1_INIT | ICW1_ICW4]
    assert chips.writes(PIC2_COMMAND) == [ICW1_INIT | ICW1_ICW4]
    assert chips.writes(PIC1_DATA)[:4] == [32, 4, 1, 0]
    assert chips.writes(PIC2_DATA)[:4] == [40, 2, 1, 0]
    assert chips.data == {PIC1_DATA: 0, PIC2_DATA: 0}


def test_mask_unmask_round_trip(chips):
    pic = Pic(chips.bus)
    pic.init()
    pic.mask(3)
    pic.mask(10)
    assert chips.data[PIC1_DATA] == 1 << 3
    assert chips.data[PIC2_DATA] == 1 << 2
    pic.unmask(3)
    pic.unmask(10)
    assert chips.data == {PIC1_DATA: 0, PIC2_DATA: 0}


def test_eoi_slave_notifies_both(chips):
    pic = Pic(chips.bus)
    pic.eoi(12)
    assert chips.log == [(PIC2_COMMAND, PIC_EOI), (PIC1_COMMAND, PIC_EOI)]


def test_eoi_master_only(chips):
    pic = Pic(chips.bus)
    pic.eoi(0)
    assert chips.log == [(PIC1_COMMAND, PIC_EOI)]


def test_bad_irq(chips):
    with pytest.raises(ValueError):
        Pic(chips.bus).mask(16)
    with pytest.raises(ValueError):
        IrqController(Pic(chips.bus)).handle(-1)


def test_handle_calls_handler_and_sends_eoi(chips):
    pic = Pic(chips.bus)
    pic.init()
    ctrl = IrqController(pic)
    seen = []
    ctrl.generic_map(seen.append, 1)
    chips.log.clear()
    ctrl.handle(1)
    assert seen == [1]
    assert chips.log == [(PIC1_COMMAND, PIC_EOI)]


def test_handler_that_acknowledges_skips_eoi(chips):
    pic = Pic(chips.bus)
    pic.init()
    ctrl = IrqController(pic)
    ctrl.generic_map(lambda irq: True, 0)
    chips.log.clear()
    ctrl.handle(0)
    assert chips.log == []


def test_unhandled_irq_still_acknowledged(chips):
    pic = Pic(chips.bus)
    pic.init()
    ctrl = IrqController(pic)
    chips.log.clear()
    ctrl.handle(9)
    assert chips.log == [(PIC2_COMMAND, PIC_EOI), (PIC1_COMMAND, PIC_EOI)]


def test_controller_idle_before_pic_init(chips):
    ctrl = IrqController(Pic(chips.bus))
    ctrl.generic_map(lambda irq: None, 4)
    ctrl.mask(4)
    ctrl.handle(4)
    assert chips.log == []
    assert ctrl.handlers[4] is not None