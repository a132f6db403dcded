from __future__ import annotations

import os
import sys
from typing import Mapping, TextIO

from rich.console import Console

from .types import OutputMode

FORCE_DASHBOARD_ENV = "FORCE_DASHBOARD_MODE"


def is_tty_capable(
    environ: Mapping[str, str] | None = None, stream: TextIO | None = None
) -> bool:
    """Whether ``stream`` can host a redrawing, colored dashboard.

    A TTY qualifies unless ``NO_COLOR`` is set or ``TERM`` names a dumb
    terminal. An unrecognized or empty ``TERM`` still qualifies.
    """
    env = os.environ if environ is None else environ
    console = Console(file=sys.stdout if stream is None else stream, _environ=dict(env))

    if not console.is_terminal:
        return False

    # https://no-color.org/
    if console.no_color:
        return False

    return not console.is_dumb_terminal


def detect_output_mode(
    verbose: bool = False,
    environ: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
) -> OutputMode:
    env = os.environ if environ is None else environ

    if verbose:
        return OutputMode.VERBOSE

    if env.get(FORCE_DASHBOARD_ENV, "").strip().lower() == "true":
        return OutputMode.DASHBOARD

    if is_tty_capable(env, stream):
        return OutputMode.DASHBOARD

    return OutputMode.VERBOSE
