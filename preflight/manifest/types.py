from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Manifest:
    path: Path
    name: str | None
    command: str | None
    role_marker: str | None

    def declares_verify(self) -> bool:
        return self.command is not None


class ManifestError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedManifestFormatError(ManifestError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class ManifestParseError(ManifestError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
