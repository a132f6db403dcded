from __future__ import annotations

from pathlib import Path
from typing import TextIO

DEFAULT_TAIL_LINES = 20


class LiveTail:
    """Follows the shared live log like ``tail -n 20 -f``.

    The first pump shows only the last ``lines`` complete lines; later pumps
    show everything appended since. Incomplete trailing lines are held back
    until their newline arrives, or flushed by a final pump.
    """

    def __init__(self, path: Path, lines: int = DEFAULT_TAIL_LINES):
        self.path = path
        self.lines = lines
        self._offset = 0
        self._pending = b""
        self._started = False

    def pump(self, stream: TextIO, *, final: bool = False) -> int:
        try:
            with self.path.open("rb") as live:
                live.seek(self._offset)
                chunk = live.read()
                self._offset = live.tell()
        except FileNotFoundError:
            return 0

        raw_lines = (self._pending + chunk).split(b"\n")
        self._pending = raw_lines.pop()
        if final and self._pending:
            raw_lines.append(self._pending)
            self._pending = b""

        if not self._started:
            raw_lines = raw_lines[-self.lines :] if self.lines > 0 else []
            self._started = True

        for raw in raw_lines:
            stream.write(raw.decode("utf-8", errors="replace") + "\n")
        if raw_lines:
            stream.flush()

        return len(raw_lines)
