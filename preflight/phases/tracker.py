from __future__ import annotations

import logging
import re
import time
from functools import lru_cache
from typing import Callable, Sequence

from preflight.registry import Task

from .types import (
    COMPLETED,
    DEFAULT_RULES,
    FAILED,
    PENDING,
    PhaseRecord,
    PhaseRule,
    PhaseState,
)

logger = logging.getLogger(__name__)


class PhaseMatcher:
    """Maps output lines to phases using the package manager's invocation banner.

    Only the banner of the root verification command counts, e.g.
    ``> my-lib@1.0.0 lint``. A nested invocation prints a different package
    name or script (``> my-lib@1.0.0 verify`` followed by ``> tsc``) and
    substrings like "test" elsewhere in the output never match.
    """

    def __init__(self, rules: Sequence[PhaseRule] = DEFAULT_RULES):
        if len(rules) < 1:
            raise ValueError("A phase matcher needs at least one rule")

        self.rules = tuple(rules)
        self._script_phase: dict[str, str] = {}
        self._priority: dict[str, int] = {PENDING: 0}

        for index, rule in enumerate(self.rules, start=1):
            if rule.phase in (PENDING, COMPLETED, FAILED):
                raise ValueError(f"'{rule.phase}' is a reserved phase name")
            self._priority.setdefault(rule.phase, index)
            for script in rule.scripts:
                self._script_phase.setdefault(script, rule.phase)

        self._priority[COMPLETED] = len(self.rules) + 1
        self._priority[FAILED] = len(self.rules) + 2
        self._scripts = tuple(sorted(self._script_phase, key=len, reverse=True))

    def phases(self) -> list[str]:
        return [rule.phase for rule in self.rules]

    def priority(self, phase: str) -> int:
        if phase not in self._priority:
            raise ValueError(f"Unknown phase: {phase}")
        return self._priority[phase]

    def match(self, line: str, banner_name: str) -> str | None:
        found = _banner_pattern(banner_name, self._scripts).match(line.rstrip())
        if found is None:
            return None
        return self._script_phase[found.group("script")]


@lru_cache(maxsize=256)
def _banner_pattern(banner_name: str, scripts: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(script) for script in scripts)
    return re.compile(rf"^> {re.escape(banner_name)}@.* (?P<script>{alternatives})$")


class PhaseTracker:
    """Per-task phase state machine.

    Each task has exactly one writer (the runner executing it). States are
    immutable and replaced whole, so readers get a consistent snapshot without
    locking.
    """

    def __init__(
        self,
        matcher: PhaseMatcher | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.matcher = matcher or PhaseMatcher()
        self.clock = clock
        self._states: dict[str, PhaseState] = {}

    def init(self, task: Task) -> PhaseState:
        state = PhaseState(PENDING, self.clock())
        self._states[task.name] = state
        return state

    def observe_line(self, task: Task, line: str) -> str | None:
        return self.matcher.match(line, task.banner_name)

    def transition(self, task: Task, new_phase: str) -> bool:
        current = self._states.get(task.name)
        if current is None:
            current = self.init(task)

        if current.is_terminal or new_phase == current.phase:
            return False

        new_priority = self.matcher.priority(new_phase)
        if new_phase not in (COMPLETED, FAILED):
            if new_priority <= self.matcher.priority(current.phase):
                logger.debug(
                    "%s: ignoring backward transition %s -> %s",
                    task.name,
                    current.phase,
                    new_phase,
                )
                return False

        now = self.clock()
        completed = current.completed_phases
        if current.phase != PENDING:
            elapsed = round(max(now - current.phase_started_at, 0.0), 1)
            completed = completed + (PhaseRecord(current.phase, elapsed),)

        self._states[task.name] = PhaseState(new_phase, now, completed)
        return True

    def feed(self, task: Task, line: str) -> str | None:
        phase = self.observe_line(task, line)
        if phase is not None:
            self.transition(task, phase)
        return phase

    def snapshot(self, task: Task) -> PhaseState | None:
        return self._states.get(task.name)

    def snapshots(self) -> dict[str, PhaseState]:
        return self._states.copy()
