from __future__ import annotations

import re
from typing import Iterable, Optional

from regsim.diagnostics import LabelError, ParamError
from regsim.model import Immediate, Operand, Pointer, Register, StoreOperand


INT_RE = re.compile(r"[+-]?[0-9]+")
INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


def parse_int(text: str) -> Optional[int]:
    if not INT_RE.fullmatch(text):
        return None
    value = int(text, 10)
    if value < INT32_MIN or value > INT32_MAX:
        return None
    return value


def _require_int(text: str, token: str, file: str, line_no: int, raw: str) -> int:
    value = parse_int(text)
    if value is None:
        raise ParamError(f"Invalid operand: {token}", file, line_no, raw)
    return value


def compute_operand(token: str, file: str, line_no: int, raw: str = "") -> Operand:
    if token.startswith("*"):
        return Pointer(_require_int(token[1:], token, file, line_no, raw))
    if token.startswith("#"):
        return Immediate(_require_int(token[1:], token, file, line_no, raw))
    return Register(_require_int(token, token, file, line_no, raw))


def compute_store_operand(token: str, file: str, line_no: int, raw: str = "") -> StoreOperand:
    if token.startswith("*"):
        return Pointer(_require_int(token[1:], token, file, line_no, raw))
    # "#N" falls through and fails to parse: stores never take immediates.
    return Register(_require_int(token, token, file, line_no, raw))


def compute_label(token: str, labels: Iterable[str], file: str, line_no: int, raw: str = "") -> str:
    if token in labels:
        return token
    raise LabelError(f"Unknown label: {token}", file, line_no, raw)
