"""Version catalog: resolves symbolic dependency references to versions.

The catalog file uses the ``libs.versions.toml`` layout::

    [versions]
    grpc = "1.47.0"

    [libraries]
    grpc-core = { group = "io.grpc", name = "grpc-core", version.ref = "grpc" }
    grpc-stub = { module = "io.grpc:grpc-stub", version = "1.47.0" }
    spine-base = "io.spine:spine-base:2.0.0"

Workspace ``[versions]`` properties are merged under the catalog's own
versions, so a library may refer to either. Versions may also embed other
versions as ``${name}`` placeholders, e.g. ``"${spineBase}-SNAPSHOT"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomlkit
from expandvars import ExpandvarsException, expand
from tomlkit.exceptions import ParseError

from buildgraph.config import DEFAULT_CONFIGURATION
from buildgraph.errors import ManifestError, UnresolvedDependency
from buildgraph.logging import get_logger
from buildgraph.models.coordinates import Coordinate, DependencyReference, ResolvedRequest

logger = get_logger(__name__)

_ALIAS_SEPARATORS = re.compile(r"[-_.]")


def normalize_alias(alias: str) -> str:
    """``grpc-core``, ``grpc_core`` and ``grpc.core`` name the same entry."""
    return _ALIAS_SEPARATORS.sub(".", alias.lower())


@dataclass(frozen=True)
class CatalogEntry:
    """One ``[libraries]`` entry."""

    alias: str
    coordinate: Coordinate
    version: str | None = None


@dataclass
class VersionCatalog:
    """Symbolic names and default versions for external libraries."""

    versions: dict[str, str] = field(default_factory=dict)
    """Named versions (``[versions]`` table plus workspace properties)"""

    libraries: dict[str, CatalogEntry] = field(default_factory=dict)
    """Entries keyed by normalized alias"""

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], properties: dict[str, str] | None = None, path: Path | None = None
    ) -> VersionCatalog:
        """Build a catalog from parsed TOML data.

        Args:
            data: Parsed catalog content
            properties: Workspace version properties; catalog versions win on clashes
            path: Catalog file, used in error messages

        Raises:
            ManifestError: If an entry is malformed, names an unknown version
                or versions refer to each other in a cycle
        """
        versions = {**(properties or {}), **{k: str(v) for k, v in data.get("versions", {}).items()}}
        catalog = cls(versions=versions)
        catalog._interpolate_versions(path)

        for alias, raw in data.get("libraries", {}).items():
            entry = catalog._parse_entry(alias, raw, path)
            catalog.libraries[normalize_alias(alias)] = entry

        logger.debug(f"Loaded version catalog with {len(catalog.libraries)} libraries")
        return catalog

    def _interpolate_versions(self, path: Path | None) -> None:
        # A chain of references is at most as long as the table
        for _ in range(len(self.versions)):
            pending = [name for name, value in self.versions.items() if "$" in value]
            if not pending:
                return
            for name in pending:
                self.versions[name] = self.interpolate(self.versions[name], f"version '{name}'", path)

        circular = sorted(name for name, value in self.versions.items() if "$" in value)
        if circular:
            raise ManifestError(f"Circular version references among: {', '.join(circular)}", path)

    @classmethod
    def load(cls, path: Path, properties: dict[str, str] | None = None) -> VersionCatalog:
        """Load a catalog file. A missing file yields a catalog of properties only."""
        if not path.exists():
            logger.debug(f"No version catalog at {path}")
            return cls(versions=dict(properties or {}))

        with open(path, encoding="utf-8") as f:
            try:
                data = tomlkit.load(f).unwrap()
            except ParseError as e:
                raise ManifestError(f"Invalid TOML: {e}", path) from e

        return cls.from_dict(data, properties=properties, path=path)

    def _parse_entry(self, alias: str, raw: Any, path: Path | None) -> CatalogEntry:
        if isinstance(raw, str):
            parts = raw.split(":")
            if len(parts) not in (2, 3) or not all(parts):
                raise ManifestError(f"Library '{alias}' has invalid notation '{raw}'", path)
            version = None
            if len(parts) == 3:
                version = self.interpolate(parts[2], f"library '{alias}'", path)
            return CatalogEntry(alias, Coordinate(parts[0], parts[1]), version)

        if not isinstance(raw, dict):
            raise ManifestError(f"Library '{alias}' must be a string or a table", path)

        if "module" in raw:
            try:
                coordinate = Coordinate.parse(raw["module"])
            except ValueError as e:
                raise ManifestError(f"Library '{alias}': {e}", path) from e
        elif "group" in raw and "name" in raw:
            coordinate = Coordinate(raw["group"], raw["name"])
        else:
            raise ManifestError(f"Library '{alias}' needs 'module' or 'group' and 'name'", path)

        version = raw.get("version")
        if isinstance(version, dict):
            ref = version.get("ref")
            if ref not in self.versions:
                raise ManifestError(f"Library '{alias}' refers to unknown version '{ref}'", path)
            version = self.versions[ref]
        elif version is not None:
            version = self.interpolate(str(version), f"library '{alias}'", path)

        return CatalogEntry(alias, coordinate, version)

    def interpolate(self, value: str, what: str = "value", path: Path | None = None) -> str:
        """Replace ``${name}`` placeholders with named versions.

        Raises:
            ManifestError: If a placeholder names an unknown version
        """
        if "$" not in value:
            return value
        try:
            return expand(value, nounset=True, environ=self.versions)
        except ExpandvarsException as e:
            raise ManifestError(f"Cannot interpolate {what}: {e}", path) from e

    def entry(self, alias: str) -> CatalogEntry | None:
        return self.libraries.get(normalize_alias(alias))

    def alias(self, alias: str, configuration: str = DEFAULT_CONFIGURATION) -> DependencyReference:
        """Reference to a catalog library, as if declared with ``libs.<alias>``.

        Raises:
            UnresolvedDependency: If the alias is not in the catalog
        """
        entry = self.entry(alias)
        if entry is None:
            raise UnresolvedDependency(f"libs.{alias}")
        return DependencyReference(
            configuration=configuration,
            coordinate=entry.coordinate,
            requested_version=entry.version,
        )

    def default_version(self, coordinate: Coordinate) -> str | None:
        """Version the catalog declares for a coordinate, if any.

        When several aliases point to the same coordinate the first one with a
        version (in alias order) wins.
        """
        for alias in sorted(self.libraries):
            entry = self.libraries[alias]
            if entry.coordinate == coordinate and entry.version is not None:
                return entry.version
        return None

    def coordinate_of(self, reference: DependencyReference) -> Coordinate:
        """Coordinate of an external or alias reference.

        Raises:
            UnresolvedDependency: If the alias is not in the catalog
        """
        if reference.alias is None:
            if reference.coordinate is None:
                raise ValueError(f"Project reference '{reference}' has no library coordinate")
            return reference.coordinate
        entry = self.entry(reference.alias)
        if entry is None:
            raise UnresolvedDependency(str(reference))
        return entry.coordinate

    def resolve(self, reference: DependencyReference, module: str | None = None) -> str:
        """Resolve a reference to a concrete version.

        Precedence: explicit version on the reference, then the catalog entry
        for its alias, then the catalog default for its coordinate.

        Args:
            reference: Dependency as declared
            module: Declaring module, for error messages

        Returns:
            Concrete version string

        Raises:
            UnresolvedDependency: If no version is declared anywhere in scope
        """
        if reference.is_project:
            raise ValueError(f"Project reference '{reference}' is resolved by the graph builder")

        if reference.requested_version:
            return reference.requested_version

        if reference.alias is not None:
            entry = self.entry(reference.alias)
            if entry is not None and entry.version is not None:
                return entry.version
            if entry is None:
                raise UnresolvedDependency(str(reference), module)

        version = self.default_version(self.coordinate_of(reference))
        if version is None:
            raise UnresolvedDependency(str(reference), module)
        return version

    def to_request(self, reference: DependencyReference, origin: str) -> ResolvedRequest:
        """Resolve a reference into a concrete request for the conflict resolver."""
        return ResolvedRequest(
            coordinate=self.coordinate_of(reference),
            version=self.resolve(reference, module=origin),
            configuration=reference.configuration,
            origin=origin,
        )
