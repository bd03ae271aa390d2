from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Type

from regsim.diagnostics import IncludeCycleError, InvalidInstructionError, ParamError, SourceReadError
from regsim.model import INSTRUCTION_TYPES, Instruction, Program, ProgramLine
from regsim.operands import compute_label, compute_operand, compute_store_operand


logger = logging.getLogger(__name__)

DEFINE_DIRECTIVE = "#define"
INCLUDE_DIRECTIVE = "#include"

OPCODES: Dict[str, Type] = {cls.mnemonic: cls for cls in INSTRUCTION_TYPES}


@dataclass
class CompilationUnit:
    """A source file plus everything it includes, sharing one program."""

    program: Program
    include_stack: List[Path] = field(default_factory=list)


def read_source(path: Path | str) -> str:
    resolved = Path(path)
    try:
        with resolved.open("r", encoding="utf-8") as handle:
            return handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Failed to read source: {exc}", str(resolved)) from exc


def _label_token(token: str) -> Optional[str]:
    if token.endswith(":"):
        return token[:-1]
    return None


def split_lines(text: str) -> List[str]:
    # Only "\n" ends a line; form feeds and other separators stay in the line.
    return [line.rstrip("\r") for line in text.split("\n")]


def prescan_labels(text: str) -> List[str]:
    labels: List[str] = []
    for raw_line in split_lines(text):
        tokens = raw_line.split()
        if not tokens:
            continue
        label = _label_token(tokens[0])
        if label is not None:
            labels.append(label)
    return labels


def compile_instruction(
    opcode: str,
    operand: Optional[str],
    labels: Iterable[str],
    file: str,
    line_no: int,
    raw: str = "",
) -> Instruction:
    cls = OPCODES.get(opcode.lower())
    if cls is None:
        raise InvalidInstructionError(f"Unknown instruction: {opcode}", file, line_no, raw)
    if cls.operand_kind == "none":
        if operand is not None:
            raise ParamError(f"{cls.mnemonic} takes no operand", file, line_no, raw)
        return cls()
    if operand is None:
        raise ParamError(f"Missing operand for {cls.mnemonic}", file, line_no, raw)
    if cls.operand_kind == "store":
        return cls(compute_store_operand(operand, file, line_no, raw))
    if cls.operand_kind == "label":
        return cls(compute_label(operand, labels, file, line_no, raw))
    return cls(compute_operand(operand, file, line_no, raw))


def _handle_define(tokens: List[str], program: Program, file: str, line_no: int, raw: str) -> None:
    if len(tokens) < 3:
        raise ParamError("#define needs a name and a value", file, line_no, raw)
    name, value = tokens[1], tokens[2]
    if name in program.defines:
        logger.debug("%s:%d: redefining %s (%s -> %s)", file, line_no + 1, name, program.defines[name], value)
    program.defines[name] = value


def _handle_include(tokens: List[str], unit: CompilationUnit, path: Path, line_no: int, raw: str) -> None:
    if len(tokens) < 2:
        raise ParamError("#include needs a path", str(path), line_no, raw)
    target = path.parent / tokens[1]
    if target.resolve() in unit.include_stack:
        raise IncludeCycleError(f"Include cycle through {target}", str(path), line_no, raw)
    try:
        text = read_source(target)
    except SourceReadError as exc:
        raise SourceReadError(f"Cannot include {target}: {exc.message}", str(path), line_no, raw) from exc
    logger.debug("%s:%d: including %s", path, line_no + 1, target)
    _compile_file(target, text, unit)


def _compile_file(path: Path, text: str, unit: CompilationUnit) -> None:
    program = unit.program
    file = str(path)

    # Only this file's labels are visible up front. Labels of an included
    # file appear once its include line is reached.
    for label in prescan_labels(text):
        program.labels.add(label)

    unit.include_stack.append(path.resolve())
    try:
        for line_no, raw_line in enumerate(split_lines(text)):
            stripped = raw_line.strip()
            if not stripped:
                continue
            tokens = stripped.split()
            # Prefix match: "#defineX A B" defines A.
            if stripped.startswith(DEFINE_DIRECTIVE):
                _handle_define(tokens, program, file, line_no, stripped)
                continue
            if stripped.startswith(INCLUDE_DIRECTIVE):
                _handle_include(tokens, unit, path, line_no, stripped)
                continue

            label = _label_token(tokens[0])
            if label is not None:
                tokens = tokens[1:]

            if not tokens:
                program.lines.append(ProgramLine(stripped, None, line_no, file, label))
                continue
            if tokens[0].startswith("#"):
                # Comment lines produce nothing, even when labelled.
                continue

            opcode = tokens[0]
            operand = tokens[1] if len(tokens) > 1 else None
            trailing = tokens[2:]
            if trailing and not trailing[0].startswith("#"):
                raise ParamError(f"Unexpected token: {trailing[0]}", file, line_no, stripped)
            if operand is not None:
                operand = program.defines.get(operand, operand)

            instruction = compile_instruction(opcode, operand, program.labels, file, line_no, stripped)
            program.lines.append(ProgramLine(stripped, instruction, line_no, file, label))
    finally:
        unit.include_stack.pop()


def load_source(path: Path | str, program: Optional[Program] = None) -> Program:
    """Compile ``path`` into ``program`` and return it.

    Lines, labels and macros are appended to ``program`` (a fresh one when
    omitted). Compilation stops at the first error, which is raised as a
    ``CompileError``; whatever was appended before the failing line stays.
    """
    unit = CompilationUnit(program if program is not None else Program())
    start = len(unit.program.lines)
    source = Path(path)
    _compile_file(source, read_source(source), unit)
    logger.debug("compiled %s: %d line(s) appended", path, len(unit.program.lines) - start)
    return unit.program
