from .tracker import PhaseMatcher, PhaseTracker
from .types import (
    COMPLETED,
    DEFAULT_RULES,
    FAILED,
    PENDING,
    PhaseRecord,
    PhaseRule,
    PhaseState,
)

__all__ = [
    "PhaseMatcher",
    "PhaseTracker",
    "PhaseRecord",
    "PhaseRule",
    "PhaseState",
    "DEFAULT_RULES",
    "PENDING",
    "COMPLETED",
    "FAILED",
]
