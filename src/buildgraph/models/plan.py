"""Build plan models.

A ``BuildPlan`` is built once per invocation and never modified afterwards:
every collection on it is a tuple or a read-only mapping.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

from buildgraph.models.coordinates import Coordinate, DependencyReference
from buildgraph.models.manifest import SourceSet
from buildgraph.resolution.resolver import Resolution, Selection


def freeze(data: Any) -> Any:
    """Recursively turn dicts into read-only mappings and lists into tuples."""
    if isinstance(data, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in data.items()})
    if isinstance(data, (list, tuple)):
        return tuple(freeze(v) for v in data)
    return data


def thaw(data: Any) -> Any:
    """Inverse of ``freeze``, for serialization."""
    if isinstance(data, Mapping):
        return {k: thaw(v) for k, v in data.items()}
    if isinstance(data, tuple):
        return [thaw(v) for v in data]
    return data


@dataclass(frozen=True)
class TransformationStep:
    """What one plugin contributed to one module."""

    order: int
    """Position in the workspace-wide application sequence (1-based)"""

    module: str
    plugin_id: str

    changes: Mapping[str, Any]
    """Manifest fragment the plugin returned (read-only)"""

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "module": self.module,
            "plugin": self.plugin_id,
            "changes": thaw(self.changes),
        }


@dataclass(frozen=True)
class ConfigurationResolution:
    """Reconciled versions of one module configuration."""

    configuration: str
    selections: tuple[Selection, ...]
    """One selection per coordinate, in coordinate order"""

    excluded: tuple[Coordinate, ...] = ()
    """Coordinates dropped by exclusion rules"""

    @classmethod
    def from_resolution(cls, resolution: Resolution) -> ConfigurationResolution:
        return cls(
            configuration=resolution.configuration,
            selections=tuple(resolution.selections[c] for c in sorted(resolution.selections)),
            excluded=tuple(sorted(resolution.excluded)),
        )

    @property
    def versions(self) -> Mapping[Coordinate, str]:
        return MappingProxyType({s.coordinate: s.version for s in self.selections})


@dataclass(frozen=True)
class ResolvedModule:
    """A module after plugins were applied and dependencies reconciled."""

    name: str
    directory: Path
    plugins: tuple[str, ...]
    source_sets: Mapping[str, SourceSet]
    dependencies: tuple[DependencyReference, ...]
    """Declared plus plugin-contributed dependencies"""

    project_dependencies: tuple[str, ...]
    """Names of workspace modules this module depends on"""

    resolutions: Mapping[str, ConfigurationResolution]
    """Resolved versions keyed by configuration"""

    artifact: PurePosixPath | None = None
    artifact_id: str | None = None
    """Published artifact id before the prefix, if it is not the module name"""

    def versions(self, configuration: str) -> Mapping[Coordinate, str]:
        """Resolved versions of a configuration (empty if nothing was declared)."""
        resolution = self.resolutions.get(configuration)
        if resolution is None:
            return MappingProxyType({})
        return resolution.versions

    @property
    def artifact_path(self) -> Path | None:
        if self.artifact is None:
            return None
        return self.directory / self.artifact


@dataclass(frozen=True)
class BuildPlan:
    """Modules in build order with fully reconciled dependency versions."""

    group: str
    version: str
    modules: tuple[ResolvedModule, ...]
    """Modules in topological order (dependencies first, ties by name)"""

    steps: tuple[TransformationStep, ...] = ()
    """Plugin transformations in the order they were applied"""

    artifact_prefix: str = ""

    @property
    def order(self) -> tuple[str, ...]:
        return tuple(m.name for m in self.modules)

    def module(self, name: str) -> ResolvedModule:
        """Look up a module by name.

        Raises:
            KeyError: If the plan has no such module
        """
        for module in self.modules:
            if module.name == name:
                return module
        raise KeyError(name)

    def artifact_id(self, module: str) -> str:
        """Published artifact id of a module: the prefix plus its id override or name."""
        override = next((m.artifact_id for m in self.modules if m.name == module), None)
        return f"{self.artifact_prefix}{override or module}"

    def workspace_versions(self) -> dict[Coordinate, str]:
        """The one version each coordinate resolves to anywhere in the workspace."""
        versions: dict[Coordinate, str] = {}
        for module in self.modules:
            for resolution in module.resolutions.values():
                for selection in resolution.selections:
                    versions.setdefault(selection.coordinate, selection.version)
        return {c: versions[c] for c in sorted(versions)}
