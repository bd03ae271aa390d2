import textwrap
from pathlib import Path

import pytest

from regsim.cheatsheet import cheat_sheet_manager


@pytest.fixture(autouse=True)
def _reset_cheat_sheet():
    cheat_sheet_manager.load_default()
    yield
    cheat_sheet_manager.load_default()


@pytest.fixture
def write_source(tmp_path: Path):
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return path

    return _write
