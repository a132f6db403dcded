import json
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml

from .types import (
    Manifest,
    ManifestError,
    ManifestParseError,
    UnsupportedManifestFormatError,
)

# Lookup order inside one package directory; the first manifest that declares
# a verification command wins.
MANIFEST_NAMES = (
    "preflight.yml",
    "preflight.yaml",
    "preflight.toml",
    "preflight.json",
    "package.json",
    "pyproject.toml",
)

NPM_VERIFY_COMMAND = "npm run verify"


def read_package(directory: str | Path) -> Manifest | None:
    pure_path = Path(directory)

    for manifest_name in MANIFEST_NAMES:
        candidate = pure_path / manifest_name
        if not candidate.is_file():
            continue
        manifest = load_manifest(candidate)
        if manifest.declares_verify():
            return manifest

    return None


def load_manifest(path: str | Path) -> Manifest:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ManifestError(f"Manifest not found: {pure_path}")

    if not pure_path.is_file():
        raise ManifestError(f"Manifest path is not a file: {pure_path}")

    kind = _detect_kind(pure_path)
    raw_file = _parse_file(pure_path, _kind_format(kind))

    match kind:
        case "package.json":
            return _build_npm_manifest(pure_path, raw_file)
        case "pyproject.toml":
            return _build_pyproject_manifest(pure_path, raw_file)
        case _:
            return _build_preflight_manifest(pure_path, raw_file)


def _detect_kind(path: Path) -> str:
    match path.name:
        case "package.json":
            return "package.json"
        case "pyproject.toml":
            return "pyproject.toml"

    match path.suffix:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedManifestFormatError(
                f"Non supported manifest: {path.name}\n Expected: "
                "package.json, pyproject.toml, preflight.yml/.yaml/.toml/.json"
            )


def _kind_format(kind: str) -> str:
    match kind:
        case "package.json":
            return "json"
        case "pyproject.toml":
            return "toml"
        case _:
            return kind


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    match fmt:
        case "yaml":
            return _parse_yaml(path)
        case "toml":
            return _parse_toml(path)
        case "json":
            return _parse_json(path)
        case _:
            raise AssertionError("Unreachable")


def _parse_yaml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"{path}: invalid YAML") from exc

    if not isinstance(raw_file, Mapping):
        raise ManifestParseError(
            f"{path}: YAML parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _parse_toml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"{path}: invalid TOML") from exc

    return raw_file


def _parse_json(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ManifestParseError(f"{path}: invalid JSON") from exc

    if not isinstance(raw_file, Mapping):
        raise ManifestParseError(
            f"{path}: JSON parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def _build_preflight_manifest(path: Path, raw: Mapping[str, Any]) -> Manifest:
    keys = {"verify", "role", "name"}

    for field in raw.keys():
        if field not in keys:
            raise ManifestError(f"{path}: Can't process: {field}")

    if not "verify" in raw:
        raise ManifestError(f"{path}: missing 'verify'")

    command = _require_command(path, "verify", raw["verify"])
    role = _optional_string(path, "role", raw.get("role"))
    name = _optional_string(path, "name", raw.get("name"))

    return Manifest(path, name, command, role)


def _build_npm_manifest(path: Path, raw: Mapping[str, Any]) -> Manifest:
    name = raw.get("name")
    if not isinstance(name, str) or len(name.strip()) < 1:
        name = None

    scripts = raw.get("scripts")
    command = None
    if isinstance(scripts, Mapping) and "verify" in scripts:
        # Validated, but npm decides how to run it.
        _require_command(path, "scripts.verify", scripts["verify"])
        command = NPM_VERIFY_COMMAND

    role = None
    lab = raw.get("lab")
    if isinstance(lab, Mapping):
        role = _optional_string(path, "lab.role", lab.get("role"))

    return Manifest(path, name, command, role)


def _build_pyproject_manifest(path: Path, raw: Mapping[str, Any]) -> Manifest:
    name = None
    project = raw.get("project")
    if isinstance(project, Mapping) and isinstance(project.get("name"), str):
        name = project["name"].strip() or None

    tool = raw.get("tool")
    section = tool.get("preflight") if isinstance(tool, Mapping) else None

    if section is None:
        return Manifest(path, name, None, None)

    if not isinstance(section, Mapping):
        raise ManifestError(f"{path}: [tool.preflight] must be a table")

    if not "verify" in section:
        raise ManifestError(f"{path}: [tool.preflight] is missing 'verify'")

    command = _require_command(path, "tool.preflight.verify", section["verify"])
    role = _optional_string(path, "tool.preflight.role", section.get("role"))

    return Manifest(path, name, command, role)


def _require_command(path: Path, field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ManifestError(f"{path}: '{field}' should be a string")

    if len(value.strip()) < 1:
        raise ManifestError(f"{path}: '{field}' is empty")

    return value.strip()


def _optional_string(path: Path, field: str, value: Any) -> str | None:
    if value is None:
        return None

    if not isinstance(value, str):
        raise ManifestError(f"{path}: '{field}' should be a string")

    return value.strip() or None
