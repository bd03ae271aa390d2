from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from regsim.cpu import CPUState, clamp_u32
from regsim.diagnostics import (
    AddressOutOfRangeError,
    DivideByZeroError,
    InvalidRegisterError,
    LabelResolutionError,
)
from regsim.model import (
    INSTRUCTION_TYPES,
    Add,
    Div,
    End,
    Goto,
    Immediate,
    JumpIfNotZero,
    JumpIfZero,
    Load,
    Mul,
    Operand,
    Pointer,
    Program,
    ProgramLine,
    Register,
    StoreOperand,
    Store,
    Sub,
)


logger = logging.getLogger(__name__)


@dataclass
class ExecResult:
    next_pc: int | None = None
    halt: bool = False


Executor = Callable[[CPUState, ProgramLine, Program], ExecResult]

INSTRUCTION_IMPLS: Dict[Type, Executor] = {}


def register_instruction_impl(instruction_type: Type, executor: Executor) -> None:
    INSTRUCTION_IMPLS[instruction_type] = executor


def get_instruction_executor(instruction_type: Type) -> Optional[Executor]:
    return INSTRUCTION_IMPLS.get(instruction_type)


def _check_index(cpu: CPUState, index: int, line: ProgramLine, what: str = "register") -> None:
    if index <= 0:
        raise InvalidRegisterError(f"Invalid {what}: {index}", line.file, line.line_no, line.text)
    if not cpu.in_range(index):
        raise AddressOutOfRangeError(
            f"{what.capitalize()} {index} is beyond the memory limit of {cpu.memory_limit}",
            line.file,
            line.line_no,
            line.text,
        )


def _peek(cpu: CPUState, index: int) -> int:
    if index <= len(cpu.memory):
        return cpu.memory[index - 1]
    return 0


def _pointer_target(cpu: CPUState, index: int, line: ProgramLine) -> int:
    """Validate both hops of ``*index`` before touching memory."""
    _check_index(cpu, index, line)
    address = _peek(cpu, index)
    _check_index(cpu, address, line, "address")
    cpu.ensure_cell(index)
    logger.debug("resolved pointer *%d to cell %d", index, address)
    return address


def _value_of(op: Operand, cpu: CPUState, line: ProgramLine) -> int:
    if isinstance(op, Immediate):
        return clamp_u32(op.value)
    if isinstance(op, Register):
        _check_index(cpu, op.index, line)
        return cpu.read_cell(op.index)
    if isinstance(op, Pointer):
        return cpu.read_cell(_pointer_target(cpu, op.index, line))
    raise TypeError(f"Unsupported operand: {op!r}")


def _store_target(op: StoreOperand, cpu: CPUState, line: ProgramLine) -> int:
    if isinstance(op, Register):
        _check_index(cpu, op.index, line)
        return op.index
    if isinstance(op, Pointer):
        return _pointer_target(cpu, op.index, line)
    raise TypeError(f"Unsupported store operand: {op!r}")


def _jump(program: Program, label: str, line: ProgramLine) -> ExecResult:
    target = program.find_label(label)
    if target is None:
        raise LabelResolutionError(f"Label not bound to any line: {label}", line.file, line.line_no, line.text)
    return ExecResult(next_pc=target)


def exec_load(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    cpu.set_accumulator(_value_of(line.instruction.operand, cpu, line))
    return ExecResult()


def exec_store(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    cpu.write_cell(_store_target(line.instruction.operand, cpu, line), cpu.accumulator)
    return ExecResult()


def exec_add(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    value = _value_of(line.instruction.operand, cpu, line)
    cpu.set_accumulator(cpu.accumulator + value)
    return ExecResult()


def exec_sub(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    value = _value_of(line.instruction.operand, cpu, line)
    # Unsigned: a larger subtrahend leaves the accumulator as it is.
    if value <= cpu.accumulator:
        cpu.set_accumulator(cpu.accumulator - value)
    return ExecResult()


def exec_mul(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    value = _value_of(line.instruction.operand, cpu, line)
    cpu.set_accumulator(cpu.accumulator * value)
    return ExecResult()


def exec_div(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    divisor = _value_of(line.instruction.operand, cpu, line)
    if divisor == 0:
        raise DivideByZeroError("Division by zero", line.file, line.line_no, line.text)
    cpu.set_accumulator(cpu.accumulator // divisor)
    return ExecResult()


def exec_goto(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    return _jump(program, line.instruction.label, line)


def exec_jzero(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    if cpu.accumulator == 0:
        return _jump(program, line.instruction.label, line)
    return ExecResult()


def exec_jnzero(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    if cpu.accumulator != 0:
        return _jump(program, line.instruction.label, line)
    return ExecResult()


def exec_end(cpu: CPUState, line: ProgramLine, program: Program) -> ExecResult:
    return ExecResult(halt=True)


register_instruction_impl(Load, exec_load)
register_instruction_impl(Store, exec_store)
register_instruction_impl(Add, exec_add)
register_instruction_impl(Sub, exec_sub)
register_instruction_impl(Mul, exec_mul)
register_instruction_impl(Div, exec_div)
register_instruction_impl(Goto, exec_goto)
register_instruction_impl(JumpIfZero, exec_jzero)
register_instruction_impl(JumpIfNotZero, exec_jnzero)
register_instruction_impl(End, exec_end)

_unhandled = [cls.__name__ for cls in INSTRUCTION_TYPES if cls not in INSTRUCTION_IMPLS]
if _unhandled:
    raise RuntimeError(f"No executor for: {', '.join(_unhandled)}")
