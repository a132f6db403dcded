from dataclasses import dataclass

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_PHASES = frozenset({COMPLETED, FAILED})


@dataclass(frozen=True)
class PhaseRule:
    phase: str
    scripts: tuple[str, ...]


@dataclass(frozen=True)
class PhaseRecord:
    name: str
    duration_s: float

    def __str__(self) -> str:
        return f"{self.name}:{self.duration_s:.1f}s"


@dataclass(frozen=True)
class PhaseState:
    phase: str
    phase_started_at: float
    completed_phases: tuple[PhaseRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def is_running(self) -> bool:
        return self.phase != PENDING and not self.is_terminal

    def total_duration(self) -> float:
        return round(sum(record.duration_s for record in self.completed_phases), 1)


DEFAULT_RULES = (
    PhaseRule("lint", ("lint",)),
    PhaseRule("format", ("format", "format:check")),
    PhaseRule("build", ("build",)),
    PhaseRule("test", ("test", "test:e2e")),
)
