from regsim.diagnostics import (
    Diagnostics,
    DivideByZeroError,
    EndMarkerMissingError,
    LabelError,
    SourceReadError,
    Snapshot,
)


def test_locations_render_one_based():
    assert str(Diagnostics("prog.asm", 0)) == "prog.asm:1"
    assert str(Diagnostics("prog.asm")) == "prog.asm"


def test_compile_error_str_and_dict():
    err = LabelError("Unknown label: loop", "prog.asm", 11, "goto loop")
    assert str(err) == "prog.asm:12: Unknown label: loop"
    assert err.to_dict() == {"kind": "label", "message": "Unknown label: loop", "file": "prog.asm", "line": 11}
    assert str(SourceReadError("Failed to read source", "gone.asm")) == "gone.asm: Failed to read source"


def test_execution_error_without_location():
    assert str(EndMarkerMissingError("Program has no instructions to run")) == "Program has no instructions to run"
    err = DivideByZeroError("Division by zero", "prog.asm", 2)
    assert str(err) == "prog.asm:3: Division by zero"
    assert err.to_dict()["kind"] == "divide_by_zero"


def test_snapshot_serializes():
    snap = Snapshot("prog.asm", 3, [1, 2], 7)
    assert snap.location == Diagnostics("prog.asm", 3)
    assert snap.to_dict() == {"file": "prog.asm", "line": 3, "registers": [1, 2], "accumulator": 7}
