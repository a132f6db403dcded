from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc

    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")

    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="preflight",
        description="Run every package's verify task: producers first, then consumers in parallel.",
    )

    parser.add_argument(
        "--root",
        default=".",
        help="Repository root to scan for packages",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Stream raw task output instead of the live dashboard",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=_positive_int,
        default=None,
        help="Parallel consumer workers (default: logical CPU count)",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List discovered tasks with their stage and exit",
    )

    return parser
