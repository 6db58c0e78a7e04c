"""Workspace loading: root manifest, module manifests, catalog and metadata.

String values in manifests may contain ``${VAR}`` or ``${VAR:-default}``
placeholders. They are expanded from the OS environment, the workspace
``.env`` file and the root ``[versions]`` properties, so a module can write
``"io.spine:spine-base:${spineBase}"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import networkx as nx
import tomlkit
from tomlkit.exceptions import ParseError

from buildgraph.config import MODULE_MANIFEST, WORKSPACE_MANIFEST
from buildgraph.env import get_project_env
from buildgraph.errors import ManifestError
from buildgraph.graph.builder import ModuleGraphBuilder, project_graph
from buildgraph.logging import get_logger
from buildgraph.models.manifest import ModuleManifest, WorkspaceManifest
from buildgraph.models.plan import BuildPlan
from buildgraph.resolution.catalog import VersionCatalog
from buildgraph.resolution.metadata import MetadataIndex
from buildgraph.utils import ExpandvarsException, expandvars_dict

logger = get_logger(__name__)


def read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file into plain Python data.

    Raises:
        ManifestError: If the file is missing or not valid TOML
    """
    if not path.exists():
        raise ManifestError("File not found", path)
    with open(path, encoding="utf-8") as f:
        try:
            return tomlkit.load(f).unwrap()
        except ParseError as e:
            raise ManifestError(f"Invalid TOML: {e}", path) from e


def _expand(data: dict[str, Any], environ: dict[str, str], path: Path) -> dict[str, Any]:
    try:
        return expandvars_dict(data, environ)
    except ExpandvarsException as e:
        raise ManifestError(f"Cannot expand variables: {e}", path) from e


@dataclass
class Workspace:
    """Everything loaded from a workspace directory."""

    manifest: WorkspaceManifest
    modules: list[ModuleManifest]
    """Module manifests in declaration order"""

    catalog: VersionCatalog
    metadata: MetadataIndex
    env: dict[str, str] = field(default_factory=dict)

    @property
    def root(self) -> Path:
        return self.manifest.root

    def select_modules(self, names: list[str] | None) -> list[ModuleManifest]:
        """The named modules plus every module they depend on, in declaration order.

        Raises:
            ManifestError: If a name is not a module of the workspace
        """
        if not names:
            return list(self.modules)

        by_name = {m.name: m for m in self.modules}
        unknown = [n for n in names if n not in by_name]
        if unknown:
            raise ManifestError(f"Unknown module(s): {', '.join(unknown)}")

        # Pull in project dependencies (shared ones too) so the selection
        # resolves on its own
        shared = [
            d.project for d in self.manifest.shared_dependencies if d.is_project and d.project in by_name
        ]
        graph = project_graph(self.modules)
        wanted = {*names, *shared}
        for name in list(wanted):
            wanted |= nx.ancestors(graph, name)

        return [m for m in self.modules if m.name in wanted]

    def builder(self) -> ModuleGraphBuilder:
        return ModuleGraphBuilder(
            catalog=self.catalog,
            metadata=self.metadata,
            forced_rules=self.manifest.forced_rules,
            exclusions=self.manifest.exclusions,
            group=self.manifest.group,
            version=self.manifest.version,
            artifact_prefix=self.manifest.artifact_prefix,
            shared_plugins=self.manifest.shared_plugins,
            shared_dependencies=self.manifest.shared_dependencies,
        )

    def build(self, modules: list[str] | None = None) -> BuildPlan:
        """Build the plan for the whole workspace or a module selection."""
        return self.builder().build(self.select_modules(modules))


def load_workspace(root: Path, env: dict[str, str] | None = None) -> Workspace:
    """Load a workspace from its root directory.

    Args:
        root: Directory containing ``buildgraph.toml``
        env: Environment for placeholder expansion and credentials
            (defaults to the OS environment plus ``.env``)

    Returns:
        Loaded workspace

    Raises:
        ManifestError: If a manifest is missing or malformed
    """
    root = root.resolve()
    env = get_project_env(root) if env is None else env

    manifest_path = root / WORKSPACE_MANIFEST
    raw = read_toml(manifest_path)

    # [versions] properties are available to every other value
    properties = {k: str(v) for k, v in _expand(raw.get("versions", {}), env, manifest_path).items()}
    environ = {**env, **properties}
    manifest = WorkspaceManifest.from_dict(_expand(raw, environ, manifest_path), root, manifest_path)

    modules = []
    for module_dir in manifest.modules:
        directory = root / module_dir
        module_path = directory / MODULE_MANIFEST
        data = _expand(read_toml(module_path), environ, module_path)
        modules.append(ModuleManifest.from_dict(data, directory, module_path))

    catalog = VersionCatalog.load(root / manifest.catalog, properties=manifest.properties)
    metadata = MetadataIndex.load(root / manifest.metadata) if manifest.metadata else MetadataIndex()

    logger.debug(f"Loaded workspace {root} with {len(modules)} module(s)")
    return Workspace(manifest=manifest, modules=modules, catalog=catalog, metadata=metadata, env=env)
