from .loader import load_manifest, read_package
from .types import (
    Manifest,
    ManifestError,
    ManifestParseError,
    UnsupportedManifestFormatError,
)

__all__ = [
    "load_manifest",
    "read_package",
    "Manifest",
    "ManifestError",
    "ManifestParseError",
    "UnsupportedManifestFormatError",
]
