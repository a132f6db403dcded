from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class ExecutionResult:
    task_name: str
    outcome: Outcome
    exit_code: int | None
    log_path: Path | None
    duration_s: float

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILURE
