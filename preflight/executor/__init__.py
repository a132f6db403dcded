from .context import RunContext
from .runner import TaskRunner
from .scheduler import Scheduler, cpu_count
from .types import ExecutionResult, Outcome

__all__ = [
    "RunContext",
    "TaskRunner",
    "Scheduler",
    "cpu_count",
    "ExecutionResult",
    "Outcome",
]
