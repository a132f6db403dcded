from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Role(str, Enum):
    PRODUCER = "producer"
    CONSUMER = "consumer"


@dataclass(frozen=True)
class Task:
    name: str
    path: Path
    command: str
    banner_name: str
    role_marker: str | None = None
    role: Role | None = None


class DiscoveryError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
