from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path

from preflight.phases import COMPLETED, FAILED
from preflight.registry import Task

from .context import RunContext
from .process import SPAWN_FAILURE_EXIT_CODE, kill_process_group, normalize_returncode
from .types import ExecutionResult, Outcome

logger = logging.getLogger(__name__)


class TaskRunner:
    """Runs one task's verification command and reports how it ended.

    Output (stdout and stderr merged) is teed to the task's log file. In
    dashboard mode every line also drives the phase tracker; in verbose mode
    it is mirrored to the shared live log instead. Never raises for a failing
    or killed command.
    """

    def run(self, task: Task, context: RunContext) -> ExecutionResult:
        context.tracker.init(task)
        log_path = context.log_path(task)
        start = time.monotonic()

        try:
            process = subprocess.Popen(
                task.command,
                shell=True,
                cwd=task.path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                start_new_session=os.name != "nt",
            )
        except OSError as exc:
            logger.warning("%s: could not start '%s': %s", task.name, task.command, exc)
            log_path.write_text(f"{exc}\n", encoding="utf-8")
            return self._finish(
                task, context, SPAWN_FAILURE_EXIT_CODE, log_path, time.monotonic() - start
            )

        context.register_process(task, process)
        try:
            self._pump(task, context, process, log_path)
            returncode = normalize_returncode(process.wait())
        except Exception as exc:
            # Only this task is lost; its siblings keep running.
            logger.warning("%s: supervision failed: %s", task.name, exc)
            kill_process_group(process)
            if process.stdout is not None:
                process.stdout.close()
            returncode = normalize_returncode(process.wait()) or 1
            self._append_error(log_path, exc)
        except BaseException:
            kill_process_group(process)
            raise
        finally:
            context.unregister_process(task)

        return self._finish(task, context, returncode, log_path, time.monotonic() - start)

    def _append_error(self, log_path: Path, exc: Exception) -> None:
        try:
            with log_path.open("a", encoding="utf-8") as log:
                log.write(f"preflight: {type(exc).__name__}: {exc}\n")
        except OSError as err:
            logger.warning("Could not write %s: %s", log_path, err)

    def _pump(
        self,
        task: Task,
        context: RunContext,
        process: subprocess.Popen[str],
        log_path: Path,
    ) -> None:
        assert process.stdout is not None

        with log_path.open("w", encoding="utf-8") as log, process.stdout:
            for line in process.stdout:
                if context.dashboard:
                    context.tracker.feed(task, line)
                    log.write(line)
                else:
                    log.write(line)
                    context.append_live(task, line)

    def _finish(
        self,
        task: Task,
        context: RunContext,
        returncode: int,
        log_path: Path,
        duration_s: float,
    ) -> ExecutionResult:
        if returncode == 0:
            context.tracker.transition(task, COMPLETED)
            log_path.unlink(missing_ok=True)
            result = ExecutionResult(task.name, Outcome.SUCCESS, None, None, duration_s)
        else:
            context.tracker.transition(task, FAILED)
            result = ExecutionResult(
                task.name, Outcome.FAILURE, returncode, log_path, duration_s
            )

        logger.info(
            "%s %s, %.3fs, exit code = %s",
            "OK" if result.succeeded else "FAIL",
            task.name,
            duration_s,
            returncode,
        )
        context.record(result)
        return result
