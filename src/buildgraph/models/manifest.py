"""Workspace and module manifest models.

A module manifest (``module.toml``) looks like::

    plugins = ["java", "protobuf", "mc-java"]
    artifact = "build/libs/model-check.jar"
    artifact_id = "model-check-bundle"

    force = ["io.grpc:protoc-gen-grpc-java:1.47.0"]
    exclude = ["com.google.protobuf:protobuf-lite"]

    [dependencies]
    implementation = ["io.spine:spine-server:2.0.0", ":model-assembler"]
    testImplementation = ["libs.spine-testlib"]

    [sources.main]
    authored = ["src/main/java"]
    generated = ["generated/main/java"]

Plugins contribute fragments with the same shape, which are merged into the
manifest with ``ModuleManifest.merge_fragment``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from buildgraph.config import (
    ALL_CONFIGURATIONS,
    DEFAULT_CATALOG,
    DEFAULT_SOURCE_SETS,
    KNOWN_CONFIGURATIONS,
)
from buildgraph.errors import ManifestError
from buildgraph.models.coordinates import DependencyReference, ExclusionRule, ForcedVersionRule


def _dedupe(paths: list[PurePosixPath]) -> tuple[PurePosixPath, ...]:
    seen: list[PurePosixPath] = []
    for path in paths:
        if path not in seen:
            seen.append(path)
    return tuple(seen)


def _as_list(value: Any, what: str, path: Path | None) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestError(f"'{what}' must be a list", path)
    return value


@dataclass(frozen=True)
class SourceSet:
    """Source directories of one source set, relative to the module directory."""

    name: str
    """Source set name (e.g., 'main', 'test')"""

    authored: tuple[PurePosixPath, ...] = ()
    """Hand-written source directories"""

    generated: tuple[PurePosixPath, ...] = ()
    """Directories filled by code generators"""

    resources: tuple[PurePosixPath, ...] = ()
    """Resource directories"""

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any], path: Path | None = None) -> SourceSet:
        return cls(
            name=name,
            authored=_dedupe([PurePosixPath(p) for p in _as_list(data.get("authored"), "authored", path)]),
            generated=_dedupe(
                [PurePosixPath(p) for p in _as_list(data.get("generated"), "generated", path)]
            ),
            resources=_dedupe(
                [PurePosixPath(p) for p in _as_list(data.get("resources"), "resources", path)]
            ),
        )

    def merged(self, other: SourceSet) -> SourceSet:
        """Append another set's directories after this set's, without duplicates."""
        return SourceSet(
            name=self.name,
            authored=_dedupe([*self.authored, *other.authored]),
            generated=_dedupe([*self.generated, *other.generated]),
            resources=_dedupe([*self.resources, *other.resources]),
        )

    @property
    def source_path(self) -> tuple[PurePosixPath, ...]:
        """Authored directories followed by generated ones."""
        return _dedupe([*self.authored, *self.generated])

    def to_dict(self) -> dict[str, Any]:
        return {
            "authored": [str(p) for p in self.authored],
            "generated": [str(p) for p in self.generated],
            "resources": [str(p) for p in self.resources],
        }


def parse_forced_rules(raw: Any, declared_by: str | None, path: Path | None) -> list[ForcedVersionRule]:
    """Parse ``force`` entries: strings or ``{notation, scope}`` tables."""
    rules = []
    for item in _as_list(raw, "force", path):
        try:
            if isinstance(item, str):
                rules.append(ForcedVersionRule.parse(item, declared_by=declared_by))
            elif isinstance(item, dict) and "notation" in item:
                rules.append(
                    ForcedVersionRule.parse(
                        item["notation"],
                        scope=item.get("scope", ALL_CONFIGURATIONS),
                        declared_by=declared_by,
                    )
                )
            else:
                raise ValueError(f"Invalid force entry {item!r}")
        except ValueError as e:
            raise ManifestError(str(e), path) from e
    return rules


def parse_exclusions(raw: Any, path: Path | None) -> list[ExclusionRule]:
    """Parse ``exclude`` entries: strings or ``{pattern, scope}`` tables."""
    exclusions = []
    for item in _as_list(raw, "exclude", path):
        try:
            if isinstance(item, str):
                exclusions.append(ExclusionRule(item))
            elif isinstance(item, dict) and "pattern" in item:
                exclusions.append(ExclusionRule(item["pattern"], item.get("scope", ALL_CONFIGURATIONS)))
            else:
                raise ValueError(f"Invalid exclude entry {item!r}")
        except ValueError as e:
            raise ManifestError(str(e), path) from e
    return exclusions


def parse_dependencies(raw: Any, path: Path | None) -> list[DependencyReference]:
    """Parse a ``[dependencies]`` table of ``configuration = [notation, ...]``."""
    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise ManifestError("'dependencies' must be a table of configurations", path)

    references = []
    for configuration, notations in raw.items():
        if configuration not in KNOWN_CONFIGURATIONS:
            raise ManifestError(f"Unknown configuration '{configuration}'", path)
        for notation in _as_list(notations, f"dependencies.{configuration}", path):
            try:
                references.append(DependencyReference.parse(notation, configuration))
            except ValueError as e:
                raise ManifestError(str(e), path) from e
    return references


@dataclass(frozen=True)
class ModuleManifest:
    """Configuration of one module as declared (plus plugin contributions)."""

    name: str
    """Module name, used in project references (``:name``)"""

    directory: Path
    """Module directory"""

    plugins: tuple[str, ...] = ()
    """Plugin ids in declaration order"""

    dependencies: tuple[DependencyReference, ...] = ()
    forced_rules: tuple[ForcedVersionRule, ...] = ()
    exclusions: tuple[ExclusionRule, ...] = ()
    source_sets: dict[str, SourceSet] = field(default_factory=dict)

    artifact: PurePosixPath | None = None
    """Built artifact, relative to the module directory"""

    artifact_id: str | None = None
    """Published artifact id (before the workspace prefix); defaults to the module name"""

    manifest_path: Path | None = None

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], directory: Path, manifest_path: Path | None = None
    ) -> ModuleManifest:
        """Create a ModuleManifest from parsed ``module.toml`` data.

        Args:
            data: Parsed manifest
            directory: Module directory; its name is the default module name
            manifest_path: Manifest file, for error messages

        Raises:
            ManifestError: If the manifest is malformed
        """
        name = data.get("name", directory.name)
        plugins = _as_list(data.get("plugins"), "plugins", manifest_path)
        if len(set(plugins)) != len(plugins):
            raise ManifestError("A plugin is applied more than once", manifest_path)

        raw_sources = data.get("sources", {})
        if not isinstance(raw_sources, dict):
            raise ManifestError("'sources' must be a table of source sets", manifest_path)
        source_sets = {set_name: SourceSet(set_name) for set_name in DEFAULT_SOURCE_SETS}
        for set_name, set_data in raw_sources.items():
            source_sets[set_name] = SourceSet.from_dict(set_name, set_data, manifest_path)

        artifact = data.get("artifact")

        return cls(
            name=name,
            directory=directory,
            plugins=tuple(plugins),
            dependencies=tuple(parse_dependencies(data.get("dependencies"), manifest_path)),
            forced_rules=tuple(parse_forced_rules(data.get("force"), name, manifest_path)),
            exclusions=tuple(parse_exclusions(data.get("exclude"), manifest_path)),
            source_sets=source_sets,
            artifact=PurePosixPath(artifact) if artifact else None,
            artifact_id=data.get("artifact_id"),
            manifest_path=manifest_path,
        )

    def merge_fragment(self, fragment: dict[str, Any], origin: str) -> ModuleManifest:
        """Return a copy with a plugin's contribution appended.

        Args:
            fragment: Dict shaped like a module manifest (``sources``,
                ``dependencies``, ``force``, ``exclude``)
            origin: Plugin id, used in error messages

        Raises:
            ManifestError: If the fragment is malformed
        """
        where = Path(f"<plugin {origin}>")
        source_sets = dict(self.source_sets)
        for set_name, set_data in fragment.get("sources", {}).items():
            addition = SourceSet.from_dict(set_name, set_data, where)
            current = source_sets.get(set_name, SourceSet(set_name))
            source_sets[set_name] = current.merged(addition)

        return dataclasses.replace(
            self,
            dependencies=self.dependencies
            + tuple(parse_dependencies(fragment.get("dependencies"), where)),
            forced_rules=self.forced_rules
            + tuple(parse_forced_rules(fragment.get("force"), self.name, where)),
            exclusions=self.exclusions + tuple(parse_exclusions(fragment.get("exclude"), where)),
            source_sets=source_sets,
        )

    def with_defaults(
        self, plugins: tuple[str, ...], dependencies: list[DependencyReference]
    ) -> ModuleManifest:
        """Return a copy with workspace-wide plugins and dependencies placed first.

        A plugin the module applies itself keeps the workspace position.
        """
        return dataclasses.replace(
            self,
            plugins=tuple(dict.fromkeys([*plugins, *self.plugins])),
            dependencies=tuple(dependencies) + self.dependencies,
        )

    @property
    def project_dependencies(self) -> list[DependencyReference]:
        return [d for d in self.dependencies if d.is_project]

    @property
    def external_dependencies(self) -> list[DependencyReference]:
        return [d for d in self.dependencies if not d.is_project]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for plugin injection."""
        dependencies: dict[str, list[str]] = {}
        for ref in self.dependencies:
            dependencies.setdefault(ref.configuration, []).append(str(ref))
        return {
            "name": self.name,
            "directory": str(self.directory),
            "plugins": list(self.plugins),
            "dependencies": dependencies,
            "force": [r.coordinate.with_version(r.version) for r in self.forced_rules],
            "exclude": [e.pattern for e in self.exclusions],
            "sources": {name: s.to_dict() for name, s in sorted(self.source_sets.items())},
            "artifact": str(self.artifact) if self.artifact else None,
        }


@dataclass(frozen=True)
class TargetConfig:
    """A publication target as declared in ``[[publishing.targets]]``."""

    name: str
    url: str
    credentials: str | None = None
    """Credentials reference, resolved from the environment at publish time"""

    classifier: str = ""
    """Artifact classifier appended to the file name (empty for none)"""

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> TargetConfig:
        if "name" not in data or "url" not in data:
            raise ManifestError("Publishing targets need 'name' and 'url'", path)
        return cls(
            name=data["name"],
            url=data["url"].rstrip("/"),
            credentials=data.get("credentials"),
            classifier=data.get("classifier", ""),
        )

    def relative_to(self, root: Path) -> TargetConfig:
        """Anchor a scheme-less relative path at the workspace root."""
        if "://" in self.url or Path(self.url).is_absolute():
            return self
        return dataclasses.replace(self, url=str(root / self.url))


@dataclass(frozen=True)
class WorkspaceManifest:
    """Root ``buildgraph.toml``: project coordinates, shared rules, targets."""

    root: Path
    group: str
    version: str
    modules: tuple[str, ...]
    """Module directories relative to the root, in declaration order"""

    artifact_prefix: str = ""
    catalog: Path = DEFAULT_CATALOG
    metadata: Path | None = None
    properties: dict[str, str] = field(default_factory=dict)
    """``[versions]`` properties, also usable as ``${name}`` in manifests"""

    forced_rules: tuple[ForcedVersionRule, ...] = ()
    exclusions: tuple[ExclusionRule, ...] = ()
    shared_plugins: tuple[str, ...] = ()
    """``[subprojects] plugins``, applied to every module before its own"""

    shared_dependencies: tuple[DependencyReference, ...] = ()
    """``[subprojects.dependencies]``, declared for every module"""

    publish_modules: tuple[str, ...] = ()
    targets: tuple[TargetConfig, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any], root: Path, path: Path | None = None) -> WorkspaceManifest:
        """Create a WorkspaceManifest from parsed ``buildgraph.toml`` data.

        Raises:
            ManifestError: If required keys are missing or malformed
        """
        project = data.get("project")
        if not isinstance(project, dict):
            raise ManifestError("Missing [project] table", path)
        for key in ("group", "version"):
            if key not in project:
                raise ManifestError(f"[project] is missing '{key}'", path)

        modules = _as_list(project.get("modules"), "project.modules", path)
        if len(set(modules)) != len(modules):
            raise ManifestError("A module is listed more than once", path)

        publishing = data.get("publishing", {})
        targets = tuple(
            TargetConfig.from_dict(t, path).relative_to(root)
            for t in _as_list(publishing.get("targets"), "publishing.targets", path)
        )
        names = [t.name for t in targets]
        if len(set(names)) != len(names):
            raise ManifestError("Publishing target names must be unique", path)

        subprojects = data.get("subprojects", {})
        if not isinstance(subprojects, dict):
            raise ManifestError("'subprojects' must be a table", path)

        metadata = project.get("metadata")

        return cls(
            root=root,
            group=project["group"],
            version=str(project["version"]),
            modules=tuple(modules),
            artifact_prefix=project.get("artifact_prefix", ""),
            catalog=Path(project.get("catalog", DEFAULT_CATALOG)),
            metadata=Path(metadata) if metadata else None,
            properties={k: str(v) for k, v in data.get("versions", {}).items()},
            forced_rules=tuple(parse_forced_rules(data.get("force"), None, path)),
            exclusions=tuple(parse_exclusions(data.get("exclude"), path)),
            shared_plugins=tuple(_as_list(subprojects.get("plugins"), "subprojects.plugins", path)),
            shared_dependencies=tuple(parse_dependencies(subprojects.get("dependencies"), path)),
            publish_modules=tuple(_as_list(publishing.get("modules"), "publishing.modules", path)),
            targets=targets,
        )
