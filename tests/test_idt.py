import pytest

from stanix.idt import (
    IDT_ENTRIES,
    IdtGate,
    describe_exception,
    new_idt,
    page_fault_info,
    set_idt_gate,
)


def test_new_idt_is_empty():
    idt = new_idt()
    assert len(idt) == IDT_ENTRIES
    assert not any(gate.present for gate in idt)


def test_set_gate_forces_present_and_selector():
    idt = new_idt()
    gate = set_idt_gate(idt, 14, 0xFFFFFFFF80001234, 0x0E)
    assert idt[14] is gate
    assert gate.present
    assert gate.selector == 0x08
    assert gate.offset == 0xFFFFFFFF80001234


def test_syscall_gate_flags_kept():
    idt = new_idt()
    gate = set_idt_gate(idt, 0x80, 0x1000, 0xEF)
    assert gate.flags == 0xEF


def test_gate_pack_round_trip():
    gate = set_idt_gate(new_idt(), 0, 0x123456789ABC, 0x8E)
    packed = gate.pack()
    assert len(packed) == 16
    assert IdtGate.unpack(packed) == gate


def test_set_gate_out_of_range():
    with pytest.raises(ValueError):
        set_idt_gate(new_idt(), IDT_ENTRIES, 0, 0)


def test_page_fault_info_kernel_write():
    assert page_fault_info(0x1000, 0x02) == (
        "page fault at address 0x1000\nOS has trying to write a non present page\n"
    )


def test_page_fault_info_user_execute_present():
    text = page_fault_info(0xABC, 0x04 | 0x10 | 0x01)
    assert text.endswith("user has trying to execute a present page\n")


def test_page_fault_info_read():
    assert "has trying to read a non present page" in page_fault_info(0, 0)


def test_describe_exception():
    assert describe_exception(14) == "page fault"
    assert describe_exception(0) == "divide by zero"
    assert describe_exception(99) == "unkown fault"