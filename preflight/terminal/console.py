from __future__ import annotations

import sys
from typing import TextIO

from rich.console import Console

from .types import OutputMode


def make_console(mode: OutputMode, stream: TextIO | None = None) -> Console:
    """Console for ``mode`` writing to ``stream``.

    Dashboard mode forces terminal handling so cursor control, clearing and
    styles are emitted even when the capability check was overridden.
    Verbose mode never emits control sequences or colors.
    """
    dashboard = mode is OutputMode.DASHBOARD
    return Console(
        file=stream or sys.stdout,
        force_terminal=dashboard,
        color_system="auto" if dashboard else None,
        highlight=False,
        emoji=False,
    )
