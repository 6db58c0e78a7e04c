"""Component metadata: the transitive dependencies of published libraries.

The workspace describes what each library version depends on in a TOML file
keyed by ``group:artifact:version``::

    ["io.spine:spine-server:2.0.0"]
    dependencies = ["io.spine:spine-base:2.0.0", "io.grpc:grpc-core:1.46.0"]

Libraries without an entry have no transitive dependencies.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError

from buildgraph.errors import ManifestError
from buildgraph.logging import get_logger
from buildgraph.models.coordinates import Coordinate

logger = get_logger(__name__)


def _split_gav(notation: str, path: Path | None) -> tuple[Coordinate, str]:
    parts = notation.strip().split(":")
    if len(parts) != 3 or not all(parts):
        raise ManifestError(f"Expected 'group:artifact:version', got '{notation}'", path)
    return Coordinate(parts[0], parts[1]), parts[2]


class MetadataIndex:
    """Lookup of ``(coordinate, version) -> [(coordinate, version), ...]``."""

    def __init__(self, edges: dict[tuple[Coordinate, str], list[tuple[Coordinate, str]]] | None = None):
        self._edges = edges or {}

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> MetadataIndex:
        edges: dict[tuple[Coordinate, str], list[tuple[Coordinate, str]]] = {}
        for notation, entry in data.items():
            node = _split_gav(notation, path)
            deps = entry.get("dependencies", []) if isinstance(entry, dict) else []
            edges[node] = [_split_gav(dep, path) for dep in deps]
        return cls(edges)

    @classmethod
    def load(cls, path: Path) -> MetadataIndex:
        """Load metadata from a TOML file. A missing file yields an empty index."""
        if not path.exists():
            logger.debug(f"No component metadata at {path}")
            return cls()

        with open(path, encoding="utf-8") as f:
            try:
                data = tomlkit.load(f).unwrap()
            except ParseError as e:
                raise ManifestError(f"Invalid TOML: {e}", path) from e

        index = cls.from_dict(data, path)
        logger.debug(f"Loaded metadata for {len(index)} component versions")
        return index

    def dependencies_of(self, coordinate: Coordinate, version: str) -> list[tuple[Coordinate, str]]:
        return list(self._edges.get((coordinate, version), []))

    def __len__(self) -> int:
        return len(self._edges)
