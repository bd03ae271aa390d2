from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from regsim.model import Immediate, Pointer, Program, ProgramLine, Register
from regsim.parser import OPCODES


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Sheet operand descriptor -> how it is written in source.
OPERAND_SYNTAX = {"imm": "#n", "reg": "n", "ptr": "*n", "label": "label"}

# Operand forms each opcode can be written with at all.
OPERAND_KIND_FORMS = {
    "operand": {"imm", "reg", "ptr"},
    "store": {"reg", "ptr"},
    "label": {"label"},
    "none": set(),
}

Form = Tuple[str, ...]


@dataclass(frozen=True)
class CheatSheetInstruction:
    mnemonic: str
    summary: str
    description: str
    forms: List[Form]


@dataclass(frozen=True)
class CheatSheet:
    schema_version: int
    name: str
    description: str
    instructions: List[CheatSheetInstruction]


@dataclass(frozen=True)
class InstructionDef:
    mnemonic: str
    summary: str
    description: str
    syntax: str
    instruction_type: Type


class CheatSheetError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CheatSheetValidationError(Exception):
    """A compiled program uses something the active sheet does not allow."""

    def __init__(self, message: str, file: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.file = file
        self.line_no = line_no
        self.text = text

    def __str__(self) -> str:
        return f"{self.file}:{self.line_no + 1}: {self.message}"


INSTRUCTION_SET: Dict[str, InstructionDef] = {}


def set_active_instruction_defs(defs: List[InstructionDef]) -> None:
    INSTRUCTION_SET.clear()
    for defn in defs:
        INSTRUCTION_SET[defn.mnemonic] = defn


def get_instruction_defs() -> List[InstructionDef]:
    return list(INSTRUCTION_SET.values())


def _default_cheat_sheet_path() -> Path:
    return Path(__file__).resolve().parent / "assets" / "cheatsheets" / "default_full.json"


def _line_form(line: ProgramLine) -> Form:
    instruction = line.instruction
    if instruction.operand_kind == "none":
        return ()
    if instruction.operand_kind == "label":
        return ("label",)
    operand = instruction.operand
    if isinstance(operand, Immediate):
        return ("imm",)
    if isinstance(operand, Register):
        return ("reg",)
    if isinstance(operand, Pointer):
        return ("ptr",)
    return ("unsupported",)


def _required_text(entry: dict, key: str, owner: str) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        raise CheatSheetError(f"{owner} is missing {key}.")
    return value.strip()


def _optional_text(entry: dict, key: str, owner: str) -> str:
    value = entry.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise CheatSheetError(f"{owner}: {key} must be a string.")
    return value.strip()


def _parse_forms(raw: Any, mnemonic: str) -> List[Form]:
    owner = f"Instruction {mnemonic}"
    if not isinstance(raw, list):
        raise CheatSheetError(f"{owner}: forms must be an array.")
    forms: List[Form] = []
    for form in raw:
        operands = form.get("operands", []) if isinstance(form, dict) else None
        if not isinstance(operands, list) or not all(isinstance(op, str) for op in operands):
            raise CheatSheetError(f"{owner}: each form needs an operands list of strings.")
        for op in operands:
            if op not in OPERAND_SYNTAX:
                raise CheatSheetError(f"{owner} has unsupported operand type: {op}")
        forms.append(tuple(operands))
    return forms


def _parse_instruction(entry: Any, index: int) -> CheatSheetInstruction:
    if not isinstance(entry, dict):
        raise CheatSheetError(f"Instruction #{index} must be an object.")
    mnemonic = _required_text(entry, "mnemonic", f"Instruction #{index}").lower()
    owner = f"Instruction {mnemonic}"
    return CheatSheetInstruction(
        mnemonic=mnemonic,
        summary=_required_text(entry, "summary", owner),
        description=_optional_text(entry, "description", owner),
        forms=_parse_forms(entry.get("forms"), mnemonic),
    )


def parse_sheet(data: Any) -> CheatSheet:
    """Build a ``CheatSheet`` from decoded JSON, raising ``CheatSheetError`` on schema problems."""
    if not isinstance(data, dict):
        raise CheatSheetError("Cheat sheet must be a JSON object.")
    version = data.get("schema_version")
    if type(version) is not int or version != SCHEMA_VERSION:
        raise CheatSheetError(f"Unsupported schema_version: {version!r}")
    entries = data.get("instructions")
    if not isinstance(entries, list) or not entries:
        raise CheatSheetError("instructions must be a non-empty array.")

    instructions = [_parse_instruction(entry, index) for index, entry in enumerate(entries, start=1)]
    mnemonics = [instruction.mnemonic for instruction in instructions]
    for mnemonic in mnemonics:
        if mnemonics.count(mnemonic) > 1:
            raise CheatSheetError(f"Duplicate mnemonic in cheat sheet: {mnemonic}")
    return CheatSheet(
        schema_version=version,
        name=_required_text(data, "name", "Cheat sheet"),
        description=_optional_text(data, "description", "Cheat sheet"),
        instructions=instructions,
    )


def format_syntax(instruction: CheatSheetInstruction) -> str:
    if not instruction.forms:
        return instruction.mnemonic
    return " | ".join(
        " ".join([instruction.mnemonic, *(OPERAND_SYNTAX[op] for op in form)]) for form in instruction.forms
    )


class CheatSheetManager:
    def __init__(self, default_path: Optional[Path] = None) -> None:
        self.default_path = default_path or _default_cheat_sheet_path()
        self.active_sheet: Optional[CheatSheet] = None
        self.active_path: Optional[Path] = None
        self._callbacks: List[Callable[[CheatSheet], None]] = []
        self.load_default()

    def on_change(self, callback: Callable[[CheatSheet], None]) -> None:
        self._callbacks.append(callback)

    def _emit_change(self) -> None:
        if not self.active_sheet:
            return
        for callback in list(self._callbacks):
            callback(self.active_sheet)

    def list_bundled(self) -> List[Path]:
        if not self.default_path.exists():
            return []
        return sorted(self.default_path.parent.glob("*.json"))

    def load_default(self) -> CheatSheet:
        return self.load_from_path(self.default_path)

    def load_from_path(self, path: Path | str) -> CheatSheet:
        resolved = Path(path).expanduser().resolve()
        sheet = parse_sheet(self._load_json(resolved))
        self._activate_sheet(sheet)
        self.active_sheet = sheet
        self.active_path = resolved
        logger.debug("activated instruction sheet %r from %s", sheet.name, resolved)
        self._emit_change()
        return sheet

    def reload(self) -> CheatSheet:
        if self.active_path:
            return self.load_from_path(self.active_path)
        return self.load_default()

    def validate_program(self, program: Program) -> None:
        if not self.active_sheet:
            raise CheatSheetError("No active cheat sheet.")
        allowed = {instr.mnemonic: instr.forms for instr in self.active_sheet.instructions}
        for line in program.lines:
            if line.instruction is None:
                continue
            mnemonic = line.instruction.mnemonic
            if mnemonic not in allowed:
                raise CheatSheetValidationError(
                    f"Instruction not allowed by {self.active_sheet.name}: {mnemonic}",
                    line.file,
                    line.line_no,
                    line.text,
                )
            form = _line_form(line)
            # An instruction listed without forms takes no operands.
            if form not in (allowed[mnemonic] or [()]):
                raise CheatSheetValidationError(
                    f"{mnemonic} does not support operands {', '.join(form) or '(none)'} in this sheet",
                    line.file,
                    line.line_no,
                    line.text,
                )

    def _activate_sheet(self, sheet: CheatSheet) -> None:
        defs: List[InstructionDef] = []
        for instruction in sheet.instructions:
            instruction_type = OPCODES.get(instruction.mnemonic)
            if instruction_type is None:
                raise CheatSheetError(
                    f"Instruction '{instruction.mnemonic}' is not implemented by the assembler."
                )
            possible = OPERAND_KIND_FORMS[instruction_type.operand_kind]
            for form in instruction.forms:
                if len(form) > 1 or not set(form) <= possible:
                    raise CheatSheetError(
                        f"Instruction '{instruction.mnemonic}' cannot take operands {list(form)}."
                    )
            defs.append(
                InstructionDef(
                    mnemonic=instruction.mnemonic,
                    summary=instruction.summary,
                    description=instruction.description,
                    syntax=format_syntax(instruction),
                    instruction_type=instruction_type,
                )
            )
        set_active_instruction_defs(defs)

    def _load_json(self, path: Path) -> dict:
        if not path.exists():
            raise CheatSheetError(f"Cheat sheet not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise CheatSheetError(f"Invalid JSON in {path}: {exc}") from exc
        except OSError as exc:
            raise CheatSheetError(f"Failed to read cheat sheet: {exc}") from exc


cheat_sheet_manager = CheatSheetManager()
