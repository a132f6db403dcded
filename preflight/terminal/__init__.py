from .console import make_console
from .mode import detect_output_mode, is_tty_capable
from .types import OutputMode

__all__ = [
    "make_console",
    "detect_output_mode",
    "is_tty_capable",
    "OutputMode",
]
