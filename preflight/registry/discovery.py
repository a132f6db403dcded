from __future__ import annotations

import logging
import os
from collections import Counter
from pathlib import Path

from preflight.manifest import Manifest, ManifestParseError, read_package

from .types import DiscoveryError, Task

logger = logging.getLogger(__name__)

SKIPPED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        "site-packages",
    }
)


def discover(root: str | Path) -> list[Task]:
    """Find every package below ``root`` that declares a verification task.

    The root directory itself is never a task. Packages are returned in
    traversal order (sorted directory names, depth first).
    """
    root_path = Path(root).expanduser().resolve()

    if not root_path.is_dir():
        raise DiscoveryError(f"Repository root is not a directory: {root_path}")

    logger.info("🔍 Discovering packages with verify scripts...")

    found: list[tuple[Path, Manifest]] = []
    for package_dir in _walk(root_path):
        try:
            manifest = read_package(package_dir)
        except ManifestParseError as exc:
            logger.warning("Skipping %s: %s", package_dir, exc)
            continue

        if manifest is not None:
            found.append((package_dir, manifest))

    if len(found) == 0:
        logger.warning("No packages with verify scripts found")
        raise DiscoveryError(f"No packages with verify scripts found under {root_path}")

    return _build_tasks(root_path, found)


def _walk(root: Path):
    for dirpath, dirnames, _ in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        current = Path(dirpath)
        if current != root:
            yield current


def _build_tasks(root: Path, found: list[tuple[Path, Manifest]]) -> list[Task]:
    basenames = Counter(package_dir.name for package_dir, _ in found)
    tasks = []

    for package_dir, manifest in found:
        if basenames[package_dir.name] > 1:
            name = package_dir.relative_to(root).as_posix()
        else:
            name = package_dir.name

        tasks.append(
            Task(
                name=name,
                path=package_dir,
                command=manifest.command,
                banner_name=manifest.name or package_dir.name,
                role_marker=manifest.role_marker,
            )
        )

    return tasks
