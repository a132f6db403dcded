from __future__ import annotations

import logging
import shutil
import signal
import subprocess
import sys
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, TextIO
from urllib.parse import quote

from rich.console import Console

from preflight.phases import PhaseTracker
from preflight.registry import Task
from preflight.terminal import OutputMode, make_console

from .process import kill_process_group
from .types import ExecutionResult

if TYPE_CHECKING:
    from preflight.dashboard import DashboardRenderer

logger = logging.getLogger(__name__)

LIVE_LOG_BANNER = "Starting preflight verification...\n"


class RunContext:
    """Everything one ``preflight`` invocation shares between its components.

    The scratch workspace holds ``logs/`` (one file per running or failed
    task) and ``live.log`` (the verbose-mode tail). Each task's tracker state
    and result are written only by the runner executing that task; the
    renderer and the aggregator only read them.
    """

    def __init__(
        self,
        root: str | Path,
        mode: OutputMode,
        *,
        stream: TextIO | None = None,
        tracker: PhaseTracker | None = None,
        console: Console | None = None,
    ):
        self.root = Path(root)
        self.mode = mode
        self.stream = stream or sys.stdout
        self.console = console or make_console(mode, self.stream)
        self.tracker = tracker or PhaseTracker()
        self.results: dict[str, ExecutionResult] = {}
        self.producers: list[Task] = []
        self.consumers: list[Task] = []
        self.renderer: DashboardRenderer | None = None

        self.workspace = Path(tempfile.mkdtemp(prefix="preflight-"))
        self.log_dir = self.workspace / "logs"
        self.log_dir.mkdir()
        self.live_log = self.workspace / "live.log"
        self.live_log.write_text(LIVE_LOG_BANNER, encoding="utf-8")

        self._live_lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._processes: dict[str, subprocess.Popen[str]] = {}
        self._stopping = False
        self._close_lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> RunContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def dashboard(self) -> bool:
        return self.mode is OutputMode.DASHBOARD

    @property
    def closed(self) -> bool:
        return self._closed

    def stage(self, producers: list[Task], consumers: list[Task]) -> None:
        self.producers = list(producers)
        self.consumers = list(consumers)

    def tasks(self) -> list[Task]:
        return self.producers + self.consumers

    def log_path(self, task: Task) -> Path:
        # Percent-encoding keeps distinct task names on distinct files.
        return self.log_dir / (quote(task.name, safe="") + ".log")

    def record(self, result: ExecutionResult) -> None:
        self.results[result.task_name] = result

    def append_live(self, task: Task, line: str) -> None:
        text = line if line.endswith("\n") else line + "\n"
        with self._live_lock:
            with self.live_log.open("a", encoding="utf-8") as live:
                live.write(f"[{task.name}] {text}")

    def degrade_to_verbose(self) -> None:
        if not self.dashboard:
            return
        logger.debug("Terminal control failed, falling back to verbose output")
        self.mode = OutputMode.VERBOSE
        self.console = make_console(OutputMode.VERBOSE, self.stream)

    def register_process(self, task: Task, process: subprocess.Popen[str]) -> None:
        with self._process_lock:
            if self._stopping:
                kill_process_group(process)
                return
            self._processes[task.name] = process

    def unregister_process(self, task: Task) -> None:
        with self._process_lock:
            self._processes.pop(task.name, None)

    def terminate_processes(self) -> None:
        with self._process_lock:
            self._stopping = True
            processes = list(self._processes.values())
            self._processes.clear()

        for process in processes:
            kill_process_group(process)

    def close(self) -> None:
        """Stop everything the run started and remove the workspace. Runs once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        with _interrupts_ignored():
            if self.renderer is not None:
                self.renderer.stop()
            self.terminate_processes()
            try:
                self.console.show_cursor(True)
            except (OSError, ValueError):
                pass
            shutil.rmtree(self.workspace, ignore_errors=True)


@contextmanager
def _interrupts_ignored() -> Iterator[None]:
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
