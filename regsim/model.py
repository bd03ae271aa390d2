from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Set, Tuple, Type, Union


@dataclass(frozen=True)
class Immediate:
    value: int


@dataclass(frozen=True)
class Register:
    index: int


@dataclass(frozen=True)
class Pointer:
    index: int


Operand = Union[Immediate, Register, Pointer]
StoreOperand = Union[Register, Pointer]


@dataclass(frozen=True)
class Load:
    mnemonic: ClassVar[str] = "load"
    operand_kind: ClassVar[str] = "operand"
    operand: Operand


@dataclass(frozen=True)
class Store:
    mnemonic: ClassVar[str] = "store"
    operand_kind: ClassVar[str] = "store"
    operand: StoreOperand


@dataclass(frozen=True)
class Add:
    mnemonic: ClassVar[str] = "add"
    operand_kind: ClassVar[str] = "operand"
    operand: Operand


@dataclass(frozen=True)
class Sub:
    mnemonic: ClassVar[str] = "sub"
    operand_kind: ClassVar[str] = "operand"
    operand: Operand


@dataclass(frozen=True)
class Mul:
    mnemonic: ClassVar[str] = "mul"
    operand_kind: ClassVar[str] = "operand"
    operand: Operand


@dataclass(frozen=True)
class Div:
    mnemonic: ClassVar[str] = "div"
    operand_kind: ClassVar[str] = "operand"
    operand: Operand


@dataclass(frozen=True)
class Goto:
    mnemonic: ClassVar[str] = "goto"
    operand_kind: ClassVar[str] = "label"
    label: str


@dataclass(frozen=True)
class JumpIfZero:
    mnemonic: ClassVar[str] = "jzero"
    operand_kind: ClassVar[str] = "label"
    label: str


@dataclass(frozen=True)
class JumpIfNotZero:
    mnemonic: ClassVar[str] = "jnzero"
    operand_kind: ClassVar[str] = "label"
    label: str


@dataclass(frozen=True)
class End:
    mnemonic: ClassVar[str] = "end"
    operand_kind: ClassVar[str] = "none"


Instruction = Union[Load, Store, Add, Sub, Mul, Div, Goto, JumpIfZero, JumpIfNotZero, End]

INSTRUCTION_TYPES: Tuple[Type, ...] = (
    Load,
    Store,
    Add,
    Sub,
    Mul,
    Div,
    Goto,
    JumpIfZero,
    JumpIfNotZero,
    End,
)


@dataclass
class ProgramLine:
    text: str
    instruction: Optional[Instruction]
    line_no: int
    file: str
    label: Optional[str] = None


@dataclass
class Program:
    lines: List[ProgramLine] = field(default_factory=list)
    labels: Set[str] = field(default_factory=set)
    defines: Dict[str, str] = field(default_factory=dict)

    def has_label(self, name: str) -> bool:
        return name in self.labels

    def find_label(self, name: str) -> Optional[int]:
        for index, line in enumerate(self.lines):
            if line.label == name:
                return index
        return None

    def last_instruction_line(self) -> Optional[ProgramLine]:
        for line in reversed(self.lines):
            if line.instruction is not None:
                return line
        return None
