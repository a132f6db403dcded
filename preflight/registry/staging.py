from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from .types import Role, Task

logger = logging.getLogger(__name__)


def classify(tasks: Iterable[Task]) -> tuple[list[Task], list[Task]]:
    producers: list[Task] = []
    consumers: list[Task] = []

    for task in tasks:
        role = role_for(task.role_marker)
        staged = replace(task, role=role)
        if role is Role.PRODUCER:
            producers.append(staged)
        else:
            consumers.append(staged)

    logger.info(
        "📦 Found %d packages, staging for execution (%d producers, %d consumers)",
        len(producers) + len(consumers),
        len(producers),
        len(consumers),
    )
    return producers, consumers


def role_for(marker: str | None) -> Role:
    if marker is not None and marker.strip().lower() == Role.PRODUCER.value:
        return Role.PRODUCER
    return Role.CONSUMER
