"""Dependency coordinates, references and version rules."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass

from packageurl import PackageURL

from buildgraph.config import ALL_CONFIGURATIONS, DEFAULT_CONFIGURATION


@dataclass(frozen=True, order=True)
class Coordinate:
    """A ``(group, artifact)`` pair identifying a library regardless of version."""

    group: str
    """Maven group (e.g., 'io.grpc')"""

    artifact: str
    """Artifact name (e.g., 'grpc-core')"""

    @classmethod
    def parse(cls, notation: str) -> Coordinate:
        """Parse ``group:artifact`` notation.

        Raises:
            ValueError: If the notation does not have exactly two parts
        """
        parts = notation.strip().split(":")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Expected 'group:artifact', got '{notation}'")
        return cls(group=parts[0], artifact=parts[1])

    def with_version(self, version: str) -> str:
        return f"{self.group}:{self.artifact}:{version}"

    def to_purl(self, version: str) -> PackageURL:
        """Package URL for this coordinate at a concrete version."""
        return PackageURL(type="maven", namespace=self.group, name=self.artifact, version=version)

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}"


@dataclass(frozen=True)
class DependencyReference:
    """A dependency as declared by a module.

    Exactly one of ``coordinate`` (external library), ``alias`` (version
    catalog entry) or ``project`` (another module of the workspace) is set.
    An external reference without ``requested_version`` gets its version from
    the version catalog.
    """

    configuration: str = DEFAULT_CONFIGURATION
    """Configuration the dependency is declared in (e.g., 'implementation')"""

    coordinate: Coordinate | None = None
    """Library coordinate for external dependencies"""

    requested_version: str | None = None
    """Version written in the manifest, if any"""

    alias: str | None = None
    """Version catalog alias (``libs.grpc-core`` is stored as ``grpc-core``)"""

    project: str | None = None
    """Name of another workspace module"""

    @classmethod
    def parse(cls, notation: str, configuration: str = DEFAULT_CONFIGURATION) -> DependencyReference:
        """Parse a dependency notation.

        Accepted forms::

            io.grpc:grpc-core:1.47.0     external, explicit version
            io.grpc:grpc-core            external, version from the catalog
            libs.grpc-core               catalog alias
            :model-assembler             project reference

        Raises:
            ValueError: If the notation matches none of the forms
        """
        text = notation.strip()
        if text.startswith(":"):
            name = text[1:]
            if not name or ":" in name:
                raise ValueError(f"Invalid project reference '{notation}'")
            return cls(configuration=configuration, project=name)

        if text.startswith("libs."):
            alias = text[len("libs.") :]
            if not alias:
                raise ValueError(f"Invalid catalog alias '{notation}'")
            return cls(configuration=configuration, alias=alias)

        parts = text.split(":")
        if len(parts) == 3 and all(parts):
            return cls(
                configuration=configuration,
                coordinate=Coordinate(parts[0], parts[1]),
                requested_version=parts[2],
            )
        if len(parts) == 2 and all(parts):
            return cls(configuration=configuration, coordinate=Coordinate(parts[0], parts[1]))

        raise ValueError(f"Invalid dependency notation '{notation}'")

    @property
    def is_project(self) -> bool:
        return self.project is not None

    def __str__(self) -> str:
        if self.project is not None:
            return f":{self.project}"
        if self.alias is not None:
            return f"libs.{self.alias}"
        if self.requested_version:
            return f"{self.coordinate}:{self.requested_version}"
        return str(self.coordinate)


@dataclass(frozen=True)
class ResolvedRequest:
    """An external dependency request with its concrete requested version."""

    coordinate: Coordinate
    version: str
    configuration: str = DEFAULT_CONFIGURATION
    origin: str = ""
    """Who asked for it: a module name or ``group:artifact:version`` of a parent"""


@dataclass(frozen=True)
class ForcedVersionRule:
    """Overrides whatever version of a coordinate is requested.

    Rules at a named configuration scope are more specific than rules for all
    configurations (``*``). Rules declared by a module are more specific than
    workspace rules.
    """

    coordinate: Coordinate
    version: str
    scope: str = ALL_CONFIGURATIONS
    declared_by: str | None = None
    """Module that declared the rule, or None for workspace-level rules"""

    @classmethod
    def parse(
        cls, notation: str, scope: str = ALL_CONFIGURATIONS, declared_by: str | None = None
    ) -> ForcedVersionRule:
        """Parse ``group:artifact:version`` notation.

        Raises:
            ValueError: If the version part is missing
        """
        parts = notation.strip().split(":")
        if len(parts) != 3 or not all(parts):
            raise ValueError(f"Forced version must be 'group:artifact:version', got '{notation}'")
        return cls(
            coordinate=Coordinate(parts[0], parts[1]),
            version=parts[2],
            scope=scope,
            declared_by=declared_by,
        )

    def applies_to(self, configuration: str) -> bool:
        return self.scope in (ALL_CONFIGURATIONS, configuration)

    @property
    def specificity(self) -> tuple[int, int]:
        """Higher tuples win: (named scope, module level)."""
        return (
            0 if self.scope == ALL_CONFIGURATIONS else 1,
            0 if self.declared_by is None else 1,
        )


@dataclass(frozen=True)
class ExclusionRule:
    """Removes matching coordinates from the dependency graph.

    ``pattern`` is ``group:artifact`` where either part may use shell-style
    wildcards, e.g. ``org.gradle:*`` or ``com.google.protobuf:protobuf-lite``.
    """

    pattern: str
    scope: str = ALL_CONFIGURATIONS

    def __post_init__(self) -> None:
        if self.pattern.count(":") != 1:
            raise ValueError(f"Exclusion must be 'group:artifact', got '{self.pattern}'")

    def applies_to(self, configuration: str) -> bool:
        return self.scope in (ALL_CONFIGURATIONS, configuration)

    def matches(self, coordinate: Coordinate) -> bool:
        group_pattern, artifact_pattern = self.pattern.split(":")
        return fnmatch.fnmatchcase(coordinate.group, group_pattern) and fnmatch.fnmatchcase(
            coordinate.artifact, artifact_pattern
        )
