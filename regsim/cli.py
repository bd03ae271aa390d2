from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from regsim.cheatsheet import CheatSheetError, CheatSheetValidationError, cheat_sheet_manager
from regsim.diagnostics import CompileError, Snapshot, SourceReadError
from regsim.emulator import DEFAULT_MAX_STEPS, Emulator


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_COMPILE_ERROR = 1
EXIT_READ_ERROR = 2
EXIT_EXECUTION_ERROR = 3
EXIT_STEP_LIMIT = 4


def _parse_memory(text: str) -> List[int]:
    try:
        return [int(item, 0) for item in text.split(",") if item.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid memory list: {text}") from exc


def _format_snapshot(snapshot: Snapshot, as_json: bool) -> str:
    if as_json:
        return json.dumps(snapshot.to_dict())
    registers = " ".join(f"r{index}={value}" for index, value in enumerate(snapshot.registers, start=1))
    return f"{snapshot.location}  acc={snapshot.accumulator}  {registers}".rstrip()


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="regsim", description="Register machine assembler and stepper")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="compile and execute a program")
    run.add_argument("source", help="program source file")
    run.add_argument("--max-steps", type=int, default=DEFAULT_MAX_STEPS, help="stop after this many steps")
    run.add_argument("--memory", type=_parse_memory, default=None, help="initial registers, e.g. 0,5,7")
    run.add_argument("--sheet", default=None, help="instruction sheet JSON to validate against")
    run.add_argument("--trace", action="store_true", help="print a snapshot after every step")
    run.add_argument("--json", action="store_true", help="print snapshots as JSON")

    check = sub.add_parser("check", help="compile and validate a program without running it")
    check.add_argument("source", help="program source file")
    check.add_argument("--sheet", default=None, help="instruction sheet JSON to validate against")
    return ap


def _compile(emulator: Emulator, source: str, sheet: Optional[str]) -> int:
    try:
        if sheet:
            cheat_sheet_manager.load_from_path(sheet)
        emulator.compile(source)
        cheat_sheet_manager.validate_program(emulator.program)
    except SourceReadError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_READ_ERROR
    except (CompileError, CheatSheetValidationError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_COMPILE_ERROR
    except CheatSheetError as exc:
        print(f"ERROR: {exc.message}", file=sys.stderr)
        return EXIT_COMPILE_ERROR
    return EXIT_OK


def _run(emulator: Emulator, args: argparse.Namespace) -> int:
    if args.memory is not None:
        emulator.replace_memory(args.memory)
    outcome = None
    for _ in range(args.max_steps):
        outcome = emulator.step()
        if outcome.error:
            print(f"ERROR: {outcome.error}", file=sys.stderr)
            return EXIT_EXECUTION_ERROR
        if args.trace or outcome.halted:
            print(_format_snapshot(outcome.snapshot, args.json))
        if outcome.halted:
            return EXIT_OK
    if outcome is not None and outcome.snapshot is not None and not args.trace:
        print(_format_snapshot(outcome.snapshot, args.json))
    print(f"ERROR: step limit of {args.max_steps} reached", file=sys.stderr)
    return EXIT_STEP_LIMIT


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    emulator = Emulator()
    status = _compile(emulator, args.source, args.sheet)
    if status != EXIT_OK:
        return status
    logger.info("compiled %s: %d line(s)", args.source, len(emulator.program.lines))
    if args.command == "check":
        print(f"OK: {len(emulator.program.lines)} line(s)")
        return EXIT_OK
    return _run(emulator, args)


if __name__ == "__main__":
    raise SystemExit(main())
