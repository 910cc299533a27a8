#!/usr/bin/env python3
"""Assemble and run a program, or re-verify a recorded trace.

Usage:
    python run_program.py program.masm \
        --lib std::math=lib/math.masm \
        --kernel kernel.masm \
        --stack 3,5 \
        --trace-out /tmp/trace.json \
        --verify

    python run_program.py --check-trace /tmp/trace.json

Library modules are registered under the given module path and can then be
imported by the program with `use.<path>`. `--stack` lists the initial stack
top first. The final stack is printed top first, one value per line.
"""

import argparse
import logging
import sys
from pathlib import Path

from assembly import Assembler, AssemblyError
from constraints import TraceRejectedError, verify_trace
from processor import ExecutionError, ExecutionOptions, ExecutionTrace, Process, TraceFormatError
from processor.stack import STACK_TOP_SIZE


def parse_stack(text: str) -> list:
    """Parse a comma-separated list of decimal or 0x-prefixed values."""
    if not text:
        return []
    return [int(v, 0) for v in text.split(",")]


def parse_lib(text: str) -> tuple:
    path, sep, file = text.partition("=")
    if not sep or not path or not file:
        raise argparse.ArgumentTypeError(f"expected PATH=FILE, got '{text}'")
    return path, Path(file)


def check_trace(path: Path) -> int:
    try:
        trace = ExecutionTrace.load(path)
    except (OSError, TraceFormatError) as e:
        print(f"Trace rejected: {e}", file=sys.stderr)
        return 1
    result = verify_trace(trace)
    if result.is_valid:
        print(f"Trace OK: {result.steps_checked} steps")
        return 0
    print(f"Trace rejected: {len(result.failures)} failure(s)", file=sys.stderr)
    for failure in result.failures:
        print(f"  {failure}", file=sys.stderr)
    return 1


def run(args: argparse.Namespace) -> int:
    if args.kernel is not None:
        assembler = Assembler.with_kernel(args.kernel.read_text(), file=str(args.kernel))
    else:
        assembler = Assembler()
    for module_path, file in args.lib:
        assembler.add_module(module_path, file.read_text(), file=str(file))

    program = assembler.assemble_program(args.program.read_text(), file=str(args.program))
    options = ExecutionOptions.from_json(args.config) if args.config else ExecutionOptions()
    result = Process(program, options).execute(parse_stack(args.stack))

    if args.trace_out is not None:
        args.trace_out.parent.mkdir(parents=True, exist_ok=True)
        result.trace.save(args.trace_out)
        print(f"Written trace to {args.trace_out}", file=sys.stderr)

    if args.verify:
        verify_trace(result.trace).raise_if_invalid()
        print(f"Trace verified: {len(result.trace)} steps", file=sys.stderr)

    for value in result.stack[:STACK_TOP_SIZE]:
        print(value)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Assemble and execute a program, or check a recorded trace'
    )
    parser.add_argument(
        'program',
        type=Path,
        nargs='?',
        help='Path to the program source'
    )
    parser.add_argument(
        '--lib',
        type=parse_lib,
        action='append',
        default=[],
        metavar='PATH=FILE',
        help='Register a library module (e.g. std::math=lib/math.masm); repeatable'
    )
    parser.add_argument(
        '--kernel',
        type=Path,
        default=None,
        help='Path to the kernel library source (syscall targets)'
    )
    parser.add_argument(
        '--stack',
        type=str,
        default='',
        help='Initial stack values, top first, comma-separated'
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to an execution options JSON file'
    )
    parser.add_argument(
        '--trace-out',
        type=Path,
        default=None,
        help='Write the execution trace to this JSON file'
    )
    parser.add_argument(
        '--verify',
        action='store_true',
        help='Check the execution trace against the constraint modules'
    )
    parser.add_argument(
        '--check-trace',
        type=Path,
        default=None,
        help='Verify a previously recorded trace instead of running a program'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='WARNING',
        help='Logging level (DEBUG, INFO, WARNING, ...)'
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format='%(levelname)s %(name)s: %(message)s')

    if args.check_trace is not None:
        return check_trace(args.check_trace)
    if args.program is None:
        parser.error('a program is required unless --check-trace is given')

    try:
        return run(args)
    except (AssemblyError, ExecutionError, TraceRejectedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
