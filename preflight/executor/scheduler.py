from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

from preflight.registry import Task

from .context import RunContext
from .runner import TaskRunner
from .types import ExecutionResult, Outcome

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 2

# Reported for a consumer whose runner raised instead of returning a result.
RUNNER_ERROR_EXIT_CODE = 1


def cpu_count() -> int:
    count = os.cpu_count()
    if not count or count < 1:
        return DEFAULT_WORKERS
    return count


class Scheduler:
    """Two fixed stages: producers one at a time with fail-fast, then consumers
    in parallel on a bounded pool. Consumers never run after a producer failed.
    """

    def __init__(self, runner: TaskRunner | None = None, jobs: int | None = None):
        if jobs is not None and jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {jobs}")

        self.runner = runner or TaskRunner()
        self.jobs = jobs

    def execute(
        self, producers: list[Task], consumers: list[Task], context: RunContext
    ) -> bool:
        """Run both stages, recording results on ``context``.

        Returns True when a producer failed and the run was halted.
        """
        producer_failed = self._run_producers(producers, context)

        if producer_failed:
            logger.warning(
                "⚠️  Core producer package failed verification. Halting parallel execution."
            )
            return True

        if len(consumers) > 0:
            self._run_consumers(consumers, context)

        return False

    def _run_producers(self, producers: list[Task], context: RunContext) -> bool:
        logger.info("📦 Stage 1: Verifying %d core producer packages...", len(producers))

        for task in producers:
            logger.info("🔧 Verifying producer: %s", task.name)
            try:
                result = self.runner.run(task, context)
            except Exception as exc:
                result = self._crashed(task, context, exc)
            if result.failed:
                return True

        return False

    def _run_consumers(self, consumers: list[Task], context: RunContext) -> None:
        workers = self.jobs or cpu_count()
        logger.info(
            "⚡ Stage 2: Verifying %d consumer packages in parallel (%d workers)",
            len(consumers),
            workers,
        )

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="preflight")
        try:
            futures = {pool.submit(self.runner.run, task, context): task for task in consumers}
            for future in as_completed(futures):
                self._collect(future, futures[future], context)
        except BaseException:
            # Interrupted: workers only return once their subprocess is gone.
            context.terminate_processes()
            pool.shutdown(wait=True, cancel_futures=True)
            raise

        pool.shutdown(wait=True)

    def _collect(
        self, future: Future[ExecutionResult], task: Task, context: RunContext
    ) -> None:
        try:
            future.result()
        except Exception as exc:
            self._crashed(task, context, exc)

    def _crashed(self, task: Task, context: RunContext, exc: Exception) -> ExecutionResult:
        logger.warning("%s: runner crashed: %s", task.name, exc)
        result = ExecutionResult(task.name, Outcome.FAILURE, RUNNER_ERROR_EXIT_CODE, None, 0.0)
        context.record(result)
        return result
