from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from regsim.cpu import CPUState
from regsim.diagnostics import (
    EndMarkerMissingError,
    ExecutionError,
    NotImplementedInstructionError,
    Snapshot,
)
from regsim.instructions import ExecResult, get_instruction_executor
from regsim.model import Program, ProgramLine
from regsim.parser import load_source


logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 10_000


@dataclass
class StepOutcome:
    snapshot: Optional[Snapshot] = None
    halted: bool = False
    error: Optional[ExecutionError] = None


class Emulator:
    """One machine: a program plus its CPU state.

    Not thread-safe. Callers that share an instance must serialize
    ``compile``, ``step``, ``reset`` and ``replace_memory`` themselves.
    """

    def __init__(self, cpu: Optional[CPUState] = None, program: Optional[Program] = None) -> None:
        self.cpu = cpu if cpu is not None else CPUState()
        self.program = program if program is not None else Program()

    def compile(self, path: Path | str) -> Program:
        return load_source(path, self.program)

    def reset(self) -> None:
        self.program = Program()
        self.cpu.reset()

    def replace_memory(self, values: Iterable[int]) -> None:
        self.cpu.replace_memory(values)

    def _snapshot(self, line: ProgramLine) -> Snapshot:
        return Snapshot(
            file=line.file,
            line_no=line.line_no,
            registers=self.cpu.registers(),
            accumulator=self.cpu.accumulator,
        )

    def step(self) -> StepOutcome:
        lines = self.program.lines
        pc = self.cpu.pc
        while pc < len(lines) and lines[pc].instruction is None:
            pc += 1
        self.cpu.pc = pc

        if pc >= len(lines):
            last = self.program.last_instruction_line()
            if last is None:
                return StepOutcome(error=EndMarkerMissingError("Program has no instructions to run"))
            return StepOutcome(snapshot=self._snapshot(last), halted=True)

        line = lines[pc]
        executor = get_instruction_executor(type(line.instruction))
        if executor is None:
            error = NotImplementedInstructionError(
                f"Instruction not implemented: {type(line.instruction).__name__}",
                line.file,
                line.line_no,
                line.text,
            )
            return StepOutcome(error=error)

        try:
            result: ExecResult = executor(self.cpu, line, self.program)
        except ExecutionError as exc:
            logger.debug("fault at %s:%d: %s", line.file, line.line_no + 1, exc.message)
            return StepOutcome(error=exc)

        if result.halt:
            return StepOutcome(snapshot=self._snapshot(line), halted=True)

        if result.next_pc is None:
            self.cpu.pc = pc + 1
        else:
            self.cpu.pc = result.next_pc
        logger.debug(
            "%s:%d %s -> acc=%d pc=%d", line.file, line.line_no + 1, line.text, self.cpu.accumulator, self.cpu.pc
        )
        return StepOutcome(snapshot=self._snapshot(line))

    def run(self, max_steps: int = DEFAULT_MAX_STEPS) -> StepOutcome:
        """Step until the program halts, faults or ``max_steps`` is used up."""
        outcome = StepOutcome()
        for _ in range(max_steps):
            outcome = self.step()
            if outcome.halted or outcome.error:
                break
        return outcome
