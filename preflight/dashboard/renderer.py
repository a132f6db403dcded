from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Sequence

from rich.console import Group
from rich.live import Live
from rich.text import Text

from preflight.executor import RunContext
from preflight.phases import COMPLETED, FAILED, PENDING, PhaseState
from preflight.registry import Task

from .tail import DEFAULT_TAIL_LINES, LiveTail

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 1.0
TAIL_INTERVAL_S = 0.1
NAME_WIDTH = 25

STAGE_ONE_TITLE = "Stage 1: Core"
STAGE_TWO_TITLE = "Stage 2: Services (parallel)"

HEADER_STYLE = "bold blue"
STAGE_STYLE = "cyan"

Snapshot = tuple[tuple[str, PhaseState | None], ...]


def format_task_line(name: str, state: PhaseState | None) -> Text:
    """One dashboard row: glyph, padded name, phase history and current phase."""
    phase = state.phase if state is not None else PENDING
    history = " ".join(str(record) for record in state.completed_phases) if state else ""

    if phase == PENDING:
        glyph, style = "⏳", ""
        display = "(pending)"
    elif phase == COMPLETED:
        glyph, style = "✅", "green"
        display = history
        if state is not None and state.completed_phases:
            display = f"{history} ({state.total_duration():.1f}s)"
    elif phase == FAILED:
        glyph, style = "❌", "red"
        display = history
    else:
        glyph, style = "🟡", "yellow"
        display = f"{history} →{phase}" if history else f"→{phase}"

    return Text(
        f"{glyph} {name:<{NAME_WIDTH}}{display}",
        style=style,
        no_wrap=True,
        overflow="ellipsis",
    )


def render_frame(
    producers: Sequence[Task],
    consumers: Sequence[Task],
    states: Mapping[str, PhaseState | None],
) -> list[Text]:
    total = len(producers) + len(consumers)
    lines = [
        Text(f"🚀 Preflight Verification ({total} packages)", style=HEADER_STYLE),
        Text(""),
    ]

    if producers:
        lines.append(Text(STAGE_ONE_TITLE, style=STAGE_STYLE))
        for task in producers:
            lines.append(format_task_line(task.name, states.get(task.name)))
        lines.append(Text(""))

    if consumers:
        lines.append(Text(STAGE_TWO_TITLE, style=STAGE_STYLE))
        for task in consumers:
            lines.append(format_task_line(task.name, states.get(task.name)))

    return lines


class DashboardRenderer:
    """Background view of a run.

    Dashboard mode polls the phase tracker and pushes the grouped status
    screen to a ``rich.live.Live`` display only when a snapshot differs from
    the last one painted. Verbose mode follows the live log instead. A
    terminal error switches the run to verbose mode for good.
    """

    def __init__(
        self,
        context: RunContext,
        interval: float = DEFAULT_INTERVAL_S,
        tail_lines: int = DEFAULT_TAIL_LINES,
    ):
        self.context = context
        self.interval = interval
        self.tail = LiveTail(context.live_log, tail_lines)
        self.repaints = 0
        self._last: Snapshot | None = None
        self._live: Live | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return

        if self.context.dashboard:
            self._guard(self._enter_screen)

        # First frame (or tail) is drawn before any task starts.
        self.refresh()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name="preflight-renderer", daemon=True
        )
        self._thread.start()

    def run(self) -> None:
        while not self._stop.is_set():
            self._stop.wait(self.interval if self.context.dashboard else TAIL_INTERVAL_S)
            self.refresh(final=self._stop.is_set())

    def stop(self) -> None:
        if self._thread is None:
            return

        self._stop.set()
        self._thread.join()
        self._thread = None

        if self._live is not None:
            live, self._live = self._live, None
            # Draws the last frame, then restores the cursor.
            self._guard(live.stop)

    def _enter_screen(self) -> None:
        console = self.context.console
        console.clear()
        live = Live(
            console=console,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        live.start()
        self._live = live

    def snapshot(self) -> Snapshot:
        states = self.context.tracker.snapshots()
        return tuple((task.name, states.get(task.name)) for task in self.context.tasks())

    def paint(self, snapshot: Snapshot) -> None:
        lines = render_frame(self.context.producers, self.context.consumers, dict(snapshot))
        assert self._live is not None
        self._live.update(Group(*lines), refresh=True)
        self.repaints += 1

    def refresh(self, final: bool = False) -> None:
        if self.context.dashboard and self._live is not None:
            snapshot = self.snapshot()
            if snapshot != self._last and len(snapshot) > 0:
                if self._guard(lambda: self.paint(snapshot)):
                    self._last = snapshot

        if not self.context.dashboard:
            try:
                self.tail.pump(self.context.stream, final=final)
            except (OSError, ValueError) as exc:
                logger.debug("Live tail stopped: %s", exc)
                self._stop.set()

    def _guard(self, action: Callable[[], None]) -> bool:
        try:
            action()
        except (OSError, ValueError) as exc:
            logger.debug("Dashboard disabled: %s", exc)
            # The failed console is dropped along with its live display.
            self._live = None
            self.context.degrade_to_verbose()
            return False
        return True
