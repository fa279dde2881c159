from stanix.symbols import Symbol, SymbolTable


def make_table():
    return SymbolTable(
        [Symbol("kmain", 0x1000), Symbol("panic", 0x2000), Symbol("yeld", 0x3000)],
        exported=[Symbol("mod_init", 0x9000)],
        kernel_end=0x8000,
    )


def test_nearest_symbol_below():
    table = make_table()
    assert table.function_name(0x2010) == "panic"
    assert table.function_name(0x1000) == "kmain"
    assert table.function_name(0x2FFF) == "panic"


def test_address_below_all_symbols():
    assert make_table().function_name(0x10) == ""


def test_exported_symbols_only_above_kernel_end():
    table = make_table()
    assert table.function_name(0x9100) == "mod_init"
    low = SymbolTable([Symbol("kmain", 0x1000)], [Symbol("early", 0x1500)], kernel_end=0x8000)
    assert low.function_name(0x1600) == "kmain"


def test_kernel_symbol_wins_when_closer():
    table = SymbolTable([Symbol("late", 0x9500)], [Symbol("mod", 0x9000)], kernel_end=0x8000)
    assert table.function_name(0x9600) == "late"


def test_symbol_at_zero_never_matches():
    table = SymbolTable([Symbol("zero", 0)])
    assert table.function_name(0x100) == ""


def test_stack_trace_stops_at_zero():
    table = make_table()
    lines = table.stack_trace(0x2004, [0x1010, 0x3020, 0, 0x2000])
    assert lines == [
        "most recent call",
        "<0x2004> panic",
        "<0x1010> kmain",
        "<0x3020> yeld",
        "older call",
    ]


def test_stack_trace_without_frames():
    lines = make_table().stack_trace(0x5, [])
    assert lines[0] == "most recent call"
    assert lines[-1] == "older call"
    assert len(lines) == 3