"""Source locations, machine snapshots and the two error families.

Compile errors are raised by the assembler and abort on the first problem.
Execution errors are raised by the instruction executors and handed back to
the caller inside a ``StepOutcome`` by the emulator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Diagnostics:
    """Where an event happened. ``line_no`` is 0-based, rendering is 1-based."""

    file: str
    line_no: Optional[int] = None

    def __str__(self) -> str:
        if self.line_no is None:
            return self.file
        return f"{self.file}:{self.line_no + 1}"


@dataclass(frozen=True)
class Snapshot:
    file: str
    line_no: int
    registers: List[int] = field(default_factory=list)
    accumulator: int = 0

    @property
    def location(self) -> Diagnostics:
        return Diagnostics(self.file, self.line_no)

    def to_dict(self) -> Dict[str, object]:
        return {
            "file": self.file,
            "line": self.line_no,
            "registers": list(self.registers),
            "accumulator": self.accumulator,
        }


class CompileError(Exception):
    kind = "compile"

    def __init__(self, message: str, file: str, line_no: Optional[int] = None, text: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.file = file
        self.line_no = line_no
        self.text = text

    @property
    def location(self) -> Diagnostics:
        return Diagnostics(self.file, self.line_no)

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "message": self.message,
            "file": self.file,
            "line": self.line_no,
        }

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class InvalidInstructionError(CompileError):
    kind = "invalid_instruction"


class ParamError(CompileError):
    kind = "param"


class LabelError(CompileError):
    kind = "label"


class SourceReadError(CompileError):
    kind = "read"


class IncludeCycleError(CompileError):
    kind = "include_cycle"


class ExecutionError(Exception):
    kind = "execution"

    def __init__(
        self,
        message: str,
        file: Optional[str] = None,
        line_no: Optional[int] = None,
        text: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.file = file
        self.line_no = line_no
        self.text = text

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "message": self.message,
            "file": self.file,
            "line": self.line_no,
        }

    def __str__(self) -> str:
        if self.file is None:
            return self.message
        return f"{Diagnostics(self.file, self.line_no)}: {self.message}"


class DivideByZeroError(ExecutionError):
    kind = "divide_by_zero"


class InvalidRegisterError(ExecutionError):
    kind = "invalid_register"


class NotImplementedInstructionError(ExecutionError):
    kind = "not_implemented"


class EndMarkerMissingError(ExecutionError):
    kind = "end_marker_missing"


class LabelResolutionError(ExecutionError):
    kind = "label_resolution"


class AddressOutOfRangeError(ExecutionError):
    kind = "address_out_of_range"
