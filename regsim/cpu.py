from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List


DEFAULT_MEMORY_LIMIT = 0x100000


def clamp_u32(value: int) -> int:
    return value & 0xFFFFFFFF


@dataclass
class CPUState:
    """Memory cells (1-based), the accumulator and the program counter."""

    memory: List[int] = field(default_factory=list)
    accumulator: int = 0
    pc: int = 0
    memory_limit: int = DEFAULT_MEMORY_LIMIT

    def reset(self) -> None:
        self.memory = []
        self.accumulator = 0
        self.pc = 0

    def in_range(self, index: int) -> bool:
        return 1 <= index <= self.memory_limit

    def ensure_cell(self, index: int) -> None:
        if index > len(self.memory):
            self.memory.extend([0] * (index - len(self.memory)))

    def read_cell(self, index: int) -> int:
        self.ensure_cell(index)
        return self.memory[index - 1]

    def write_cell(self, index: int, value: int) -> None:
        self.ensure_cell(index)
        self.memory[index - 1] = clamp_u32(value)

    def set_accumulator(self, value: int) -> None:
        self.accumulator = clamp_u32(value)

    def replace_memory(self, values: Iterable[int]) -> None:
        self.memory = [clamp_u32(int(value)) for value in values]

    def registers(self) -> List[int]:
        return list(self.memory)
