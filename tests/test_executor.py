# tests/test_executor.py
from __future__ import annotations

import logging
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Iterator

import pytest

from preflight.executor import ExecutionResult, Outcome, RunContext, TaskRunner
from preflight.phases import COMPLETED, FAILED, PhaseRecord
from preflight.registry import Role, Task
from preflight.terminal import OutputMode


def _py(cmd: str) -> str:
    """
    Build a shell command that runs `python -c "<cmd>"` using the current interpreter.
    TaskRunner uses shell=True, so return a single command string.
    """
    exe = str(Path(sys.executable))
    return f'"{exe}" -c "{cmd}"'


def _task(tmp_path: Path, name: str, command: str, banner: str | None = None) -> Task:
    pkg = tmp_path / "repo" / name
    pkg.mkdir(parents=True, exist_ok=True)
    return Task(
        name=name,
        path=pkg,
        command=command,
        banner_name=banner or name,
        role=Role.CONSUMER,
    )


@pytest.fixture
def verbose_context(tmp_path: Path) -> Iterator[RunContext]:
    context = RunContext(tmp_path, OutputMode.VERBOSE)
    yield context
    context.close()


@pytest.fixture
def dashboard_context(tmp_path: Path) -> Iterator[RunContext]:
    context = RunContext(tmp_path, OutputMode.DASHBOARD)
    yield context
    context.close()


# -------------------------
# RunContext
# -------------------------


def test_context_creates_and_removes_workspace(tmp_path: Path) -> None:
    context = RunContext(tmp_path, OutputMode.VERBOSE)
    workspace = context.workspace

    assert (workspace / "logs").is_dir()
    assert context.live_log.read_text(encoding="utf-8").startswith("Starting preflight")

    context.close()
    context.close()

    assert context.closed
    assert not workspace.exists()


def test_context_log_path_encodes_qualified_names(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "x", "true")
    qualified = Task(name="apis/server", path=task.path, command="true", banner_name="server")

    assert verbose_context.log_path(qualified).parent == verbose_context.log_dir
    assert verbose_context.log_path(qualified).name == "apis%2Fserver.log"


def test_context_log_paths_never_collide(verbose_context: RunContext, tmp_path: Path) -> None:
    path = tmp_path / "repo"
    names = ["a/b", "x/b", "a__b", "a%2Fb", "a_b"]
    tasks = [Task(name=n, path=path, command="true", banner_name="b") for n in names]

    paths = {verbose_context.log_path(t) for t in tasks}

    assert len(paths) == len(names)


def test_failure_log_survives_sibling_with_similar_name(
    verbose_context: RunContext, tmp_path: Path
) -> None:
    failing = Task(name="a/b", path=tmp_path, command=_py("print('broken'); raise SystemExit(1)"), banner_name="b")
    passing = Task(name="a__b", path=tmp_path, command=_py("print('fine')"), banner_name="a__b")
    runner = TaskRunner()

    bad = runner.run(failing, verbose_context)
    runner.run(passing, verbose_context)

    assert bad.log_path is not None
    assert bad.log_path.read_text(encoding="utf-8") == "broken\n"


def test_context_degrades_to_verbose(dashboard_context: RunContext) -> None:
    assert dashboard_context.dashboard
    assert dashboard_context.console.is_terminal

    dashboard_context.degrade_to_verbose()

    assert dashboard_context.mode is OutputMode.VERBOSE
    assert not dashboard_context.console.is_terminal


def test_terminate_processes_kills_running_task(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "slow", _py("import time; print('started', flush=True); time.sleep(30)"))
    results: list[ExecutionResult] = []
    worker = threading.Thread(target=lambda: results.append(TaskRunner().run(task, verbose_context)))

    worker.start()
    deadline = time.monotonic() + 10
    while "started" not in verbose_context.live_log.read_text(encoding="utf-8"):
        assert time.monotonic() < deadline
        time.sleep(0.05)
    verbose_context.terminate_processes()
    worker.join(timeout=10)

    assert not worker.is_alive()
    assert results[0].failed
    assert results[0].exit_code in (128 + signal.SIGTERM, 128 + signal.SIGKILL)


def test_process_started_after_shutdown_is_killed(verbose_context: RunContext, tmp_path: Path) -> None:
    verbose_context.terminate_processes()
    task = _task(tmp_path, "late", _py("import time; time.sleep(30)"))

    start = time.monotonic()
    result = TaskRunner().run(task, verbose_context)

    assert result.failed
    assert time.monotonic() - start < 10


# -------------------------
# TaskRunner
# -------------------------


def test_success_discards_log(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "ok", _py("print('hello')"))

    result = TaskRunner().run(task, verbose_context)

    assert result.outcome is Outcome.SUCCESS
    assert result.exit_code is None
    assert result.log_path is None
    assert not verbose_context.log_path(task).exists()
    assert verbose_context.results["ok"] == result
    assert verbose_context.tracker.snapshot(task).phase == COMPLETED


def test_failure_retains_exactly_one_log(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "bad", _py("import sys; print('out', flush=True); print('err', file=sys.stderr); raise SystemExit(3)"))

    result = TaskRunner().run(task, verbose_context)

    assert result.outcome is Outcome.FAILURE
    assert result.exit_code == 3
    assert result.log_path == verbose_context.log_path(task)
    assert list(verbose_context.log_dir.iterdir()) == [result.log_path]
    assert result.log_path.read_text(encoding="utf-8").splitlines() == ["out", "err"]
    assert verbose_context.tracker.snapshot(task).phase == FAILED


def test_working_dir_is_package_path(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(
        tmp_path,
        "w",
        _py("from pathlib import Path; Path('written.txt').write_text('ok', encoding='utf-8')"),
    )

    result = TaskRunner().run(task, verbose_context)

    assert result.succeeded
    assert (task.path / "written.txt").read_text(encoding="utf-8") == "ok"


def test_verbose_mode_mirrors_prefixed_lines_to_live_log(
    verbose_context: RunContext, tmp_path: Path
) -> None:
    task = _task(tmp_path, "lib", _py("print('one'); print('two')"))

    TaskRunner().run(task, verbose_context)

    live = verbose_context.live_log.read_text(encoding="utf-8").splitlines()
    assert live[1:] == ["[lib] one", "[lib] two"]


def test_dashboard_mode_tracks_phases_without_live_log(
    dashboard_context: RunContext, tmp_path: Path
) -> None:
    task = _task(
        tmp_path,
        "lib",
        _py("print('> lib@1.0.0 lint'); print('> lib@1.0.0 build'); print('> lib@1.0.0 test')"),
    )

    result = TaskRunner().run(task, dashboard_context)

    state = dashboard_context.tracker.snapshot(task)
    assert result.succeeded
    assert state.phase == COMPLETED
    assert [r.name for r in state.completed_phases] == ["lint", "build", "test"]
    assert dashboard_context.live_log.read_text(encoding="utf-8").splitlines() == [
        "Starting preflight verification..."
    ]


def test_externally_killed_process_is_a_failure(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "killed", _py("import os, signal; os.kill(os.getpid(), signal.SIGKILL)"))

    result = TaskRunner().run(task, verbose_context)

    assert result.failed
    assert result.exit_code == 128 + 9
    assert result.log_path is not None and result.log_path.exists()


def test_unstartable_command_is_a_failure(verbose_context: RunContext, tmp_path: Path) -> None:
    task = Task(
        name="gone",
        path=tmp_path / "does-not-exist",
        command="true",
        banner_name="gone",
    )

    result = TaskRunner().run(task, verbose_context)

    assert result.failed
    assert result.exit_code == 127
    assert result.log_path.read_text(encoding="utf-8") != ""


def test_result_properties() -> None:
    ok = ExecutionResult("a", Outcome.SUCCESS, None, None, 0.1)
    bad = ExecutionResult("b", Outcome.FAILURE, 1, Path("b.log"), 0.1)

    assert ok.succeeded and not ok.failed
    assert bad.failed and not bad.succeeded


def test_phase_record_formats_one_decimal() -> None:
    assert str(PhaseRecord("lint", 1.2)) == "lint:1.2s"
    assert str(PhaseRecord("build", 3.0)) == "build:3.0s"


class ExplodingRunner(TaskRunner):
    def _pump(self, task, context, process, log_path):
        raise OSError(28, "No space left on device")


def test_supervision_error_becomes_failure(verbose_context: RunContext, tmp_path: Path) -> None:
    task = _task(tmp_path, "bad", _py("import time; time.sleep(30)"))

    start = time.monotonic()
    result = ExplodingRunner().run(task, verbose_context)

    assert result.failed
    assert result.exit_code != 0
    assert time.monotonic() - start < 10
    assert "No space left on device" in result.log_path.read_text(encoding="utf-8")
    assert verbose_context.tracker.snapshot(task).phase == FAILED
    assert verbose_context.results["bad"] == result


def test_unstartable_command_logs_below_dashboard_threshold(
    dashboard_context: RunContext, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    task = Task(name="gone", path=tmp_path / "does-not-exist", command="true", banner_name="gone")

    with caplog.at_level(logging.DEBUG, logger="preflight"):
        TaskRunner().run(task, dashboard_context)

    records = [r for r in caplog.records if "could not start" in r.getMessage()]
    assert [r.levelno for r in records] == [logging.WARNING]
