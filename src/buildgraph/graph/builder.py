"""Module graph builder: turns module manifests into a BuildPlan.

All module configuration is collected before anything is resolved. The
pipeline is:

1. merge the workspace ``[subprojects]`` plugins and dependencies ahead of
   each module's own,
2. apply each module's plugins in declaration order, recording every
   contribution as a TransformationStep,
3. check that authored and generated source trees do not overlap,
4. order modules topologically over project references,
5. reconcile dependency versions per module and configuration, then align
   them so the workspace uses one version per coordinate.

Any error aborts the build; nothing is written until a plan exists.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from types import MappingProxyType

import networkx as nx

from buildgraph.config import DEFAULT_CONFIGURATION
from buildgraph.errors import ConflictError, ManifestError
from buildgraph.graph import apply_build_plugin, get_registered_build_plugins
from buildgraph.graph.sources import check_source_sets
from buildgraph.logging import get_logger
from buildgraph.models.coordinates import (
    Coordinate,
    DependencyReference,
    ExclusionRule,
    ForcedVersionRule,
    ResolvedRequest,
)
from buildgraph.models.manifest import ModuleManifest
from buildgraph.models.plan import (
    BuildPlan,
    ConfigurationResolution,
    ResolvedModule,
    TransformationStep,
    freeze,
)
from buildgraph.resolution.catalog import VersionCatalog
from buildgraph.resolution.metadata import MetadataIndex
from buildgraph.resolution.resolver import (
    ConflictResolver,
    Resolution,
    Selection,
    SelectionReason,
    validate_forced_rules,
)
from buildgraph.resolution.versions import compare_versions, highest_version

logger = get_logger(__name__)

EXPORTED_CONFIGURATIONS = ("api", DEFAULT_CONFIGURATION)
"""Configurations whose dependencies a module passes on to modules that depend on it"""

SUBPROJECTS_STEP = "subprojects"
"""Source recorded on steps that add workspace-wide dependencies"""

WORKSPACE_SCOPE = "workspace"
"""Scope reported when modules force different versions of one coordinate"""


def project_graph(modules: Iterable[ModuleManifest]) -> nx.DiGraph:
    """Project references as edges from each dependency to its dependents."""
    graph = nx.DiGraph()
    for manifest in modules:
        graph.add_node(manifest.name)
        for reference in manifest.project_dependencies:
            graph.add_edge(reference.project, manifest.name)
    return graph


class ModuleGraphBuilder:
    """Builds a BuildPlan from module manifests.

    Example:
        >>> builder = ModuleGraphBuilder(catalog, group="io.spine.tools", version="2.0.0")
        >>> plan = builder.build(modules)
        >>> plan.order
        ('model-assembler', 'model-check')
    """

    def __init__(
        self,
        catalog: VersionCatalog,
        metadata: MetadataIndex | None = None,
        forced_rules: Iterable[ForcedVersionRule] = (),
        exclusions: Iterable[ExclusionRule] = (),
        group: str = "",
        version: str = "",
        artifact_prefix: str = "",
        shared_plugins: Iterable[str] = (),
        shared_dependencies: Iterable[DependencyReference] = (),
    ):
        """Initialize the builder.

        Args:
            catalog: Version catalog for references without explicit versions
            metadata: Transitive dependency metadata
            forced_rules: Workspace-level forced version rules
            exclusions: Workspace-level exclusion rules
            group: Project group recorded in the plan
            version: Project version recorded in the plan
            artifact_prefix: Prefix of published artifact ids
            shared_plugins: Plugins applied to every module before its own
            shared_dependencies: Dependencies declared for every module
        """
        self.catalog = catalog
        self.resolver = ConflictResolver(metadata)
        self.forced_rules = tuple(forced_rules)
        self.exclusions = tuple(exclusions)
        self.group = group
        self.version = version
        self.artifact_prefix = artifact_prefix
        self.shared_plugins = tuple(shared_plugins)
        self.shared_dependencies = tuple(shared_dependencies)

    def build(self, modules: Iterable[ModuleManifest]) -> BuildPlan:
        """Compose the build plan.

        Args:
            modules: Module manifests in declaration order

        Returns:
            Immutable BuildPlan with modules in build order

        Raises:
            ManifestError: Unknown plugin, unknown project reference or cycle
            SourceOverlapError: Authored and generated trees share a file
            UnresolvedDependency: A dependency has no version in scope
            ConflictError: Two forced rules disagree at the same scope, or
                modules force different versions of one coordinate
        """
        manifests = list(modules)
        names = [m.name for m in manifests]
        if len(set(names)) != len(names):
            raise ManifestError(f"Duplicate module names in {names}")

        steps: list[TransformationStep] = []
        transformed: dict[str, ModuleManifest] = {}
        for manifest in manifests:
            manifest = self._apply_subprojects(manifest, steps)
            transformed[manifest.name] = self._apply_plugins(manifest, steps)

        for manifest in transformed.values():
            check_source_sets(manifest.name, manifest.directory, manifest.source_sets)

        order = self._topological_order(transformed)
        logger.debug(f"Module order: {', '.join(order)}")

        requests: dict[str, list[ResolvedRequest]] = {}
        exported: dict[str, list[ResolvedRequest]] = {}
        for name in order:
            requests[name] = self._collect_requests(transformed[name], exported)

        resolutions = self._reconcile_workspace([transformed[name] for name in order], requests)

        return BuildPlan(
            group=self.group,
            version=self.version,
            modules=tuple(self._resolved_module(transformed[name], resolutions[name]) for name in order),
            steps=tuple(steps),
            artifact_prefix=self.artifact_prefix,
        )

    def _apply_subprojects(self, manifest: ModuleManifest, steps: list[TransformationStep]) -> ModuleManifest:
        # A shared ':project' reference is skipped in the project itself
        dependencies = [d for d in self.shared_dependencies if d.project != manifest.name]
        if not self.shared_plugins and not dependencies:
            return manifest

        manifest = manifest.with_defaults(self.shared_plugins, dependencies)
        if dependencies:
            fragment: dict[str, list[str]] = {}
            for reference in dependencies:
                fragment.setdefault(reference.configuration, []).append(str(reference))
            steps.append(
                TransformationStep(
                    order=len(steps) + 1,
                    module=manifest.name,
                    plugin_id=SUBPROJECTS_STEP,
                    changes=freeze({"dependencies": fragment}),
                )
            )
        return manifest

    def _apply_plugins(self, manifest: ModuleManifest, steps: list[TransformationStep]) -> ModuleManifest:
        registered = get_registered_build_plugins()
        applied: list[str] = []

        for plugin_id in manifest.plugins:
            info = registered.get(plugin_id)
            if info is None:
                raise ManifestError(
                    f"Module '{manifest.name}' applies unknown plugin '{plugin_id}'",
                    manifest.manifest_path,
                )
            missing = [r for r in info.requires if r not in applied]
            if missing:
                raise ManifestError(
                    f"Plugin '{plugin_id}' in module '{manifest.name}' must be applied "
                    f"after {', '.join(missing)}",
                    manifest.manifest_path,
                )

            fragment = apply_build_plugin(plugin_id, manifest.to_dict())
            if fragment is None:
                raise ManifestError(
                    f"No plugin handled '{plugin_id}' for module '{manifest.name}'",
                    manifest.manifest_path,
                )

            manifest = manifest.merge_fragment(fragment, plugin_id)
            steps.append(
                TransformationStep(
                    order=len(steps) + 1,
                    module=manifest.name,
                    plugin_id=plugin_id,
                    changes=freeze(fragment),
                )
            )
            applied.append(plugin_id)
            logger.debug(f"Applied plugin '{plugin_id}' to '{manifest.name}'")

        return manifest

    @staticmethod
    def _topological_order(modules: dict[str, ModuleManifest]) -> list[str]:
        """Dependencies first; modules that are ready at the same time go by name."""
        for name, manifest in modules.items():
            for project in sorted({ref.project for ref in manifest.project_dependencies}):
                if project not in modules:
                    raise ManifestError(
                        f"Module '{name}' depends on unknown project ':{project}'",
                        manifest.manifest_path,
                    )
                if project == name:
                    raise ManifestError(f"Module '{name}' depends on itself", manifest.manifest_path)

        graph = project_graph(modules.values())
        try:
            return list(nx.lexicographical_topological_sort(graph))
        except nx.NetworkXUnfeasible:
            cycle = sorted({source for source, _ in nx.find_cycle(graph)})
            raise ManifestError(f"Project dependency cycle among: {', '.join(cycle)}") from None

    def _rules(self, manifest: ModuleManifest) -> tuple[list[ForcedVersionRule], list[ExclusionRule]]:
        return [*self.forced_rules, *manifest.forced_rules], [*self.exclusions, *manifest.exclusions]

    def _collect_requests(
        self, manifest: ModuleManifest, exported: dict[str, list[ResolvedRequest]]
    ) -> list[ResolvedRequest]:
        requests: list[ResolvedRequest] = []
        for reference in manifest.external_dependencies:
            requests.append(self.catalog.to_request(reference, origin=manifest.name))

        for reference in manifest.project_dependencies:
            for request in exported[reference.project]:
                requests.append(
                    ResolvedRequest(
                        coordinate=request.coordinate,
                        version=request.version,
                        configuration=reference.configuration,
                        origin=request.origin,
                    )
                )

        exported[manifest.name] = [r for r in requests if r.configuration in EXPORTED_CONFIGURATIONS]
        return requests

    def _reconcile_workspace(
        self, manifests: list[ModuleManifest], requests: dict[str, list[ResolvedRequest]]
    ) -> dict[str, dict[str, Resolution]]:
        """Resolve every module, then align versions until the workspace agrees.

        Each module is resolved on its own reachable graph. Where modules
        select different versions of one coordinate, the highest becomes a
        floor for every module; a forced selection becomes a pin. Both only
        grow, so the loop ends.
        """
        for manifest in manifests:
            validate_forced_rules(self._rules(manifest)[0])

        floors: dict[Coordinate, str] = {}
        pins: dict[Coordinate, str] = {}
        passes = 0
        while True:
            passes += 1
            resolutions = {}
            for manifest in manifests:
                rules, exclusions = self._rules(manifest)
                resolutions[manifest.name] = {
                    configuration: self.resolver.reconcile(
                        requests[manifest.name], rules, exclusions, configuration, floors, pins
                    )
                    for configuration in sorted({r.configuration for r in requests[manifest.name]})
                }
            if not self._align(resolutions, floors, pins):
                logger.debug(f"Workspace versions aligned in {passes} pass(es)")
                return resolutions

    @staticmethod
    def _align(
        resolutions: dict[str, dict[str, Resolution]],
        floors: dict[Coordinate, str],
        pins: dict[Coordinate, str],
    ) -> bool:
        """Record floors and pins for disagreeing coordinates; True if any changed."""
        selected: dict[Coordinate, list[Selection]] = defaultdict(list)
        for per_module in resolutions.values():
            for resolution in per_module.values():
                for coordinate, selection in resolution.selections.items():
                    selected[coordinate].append(selection)

        changed = False
        for coordinate in sorted(selected):
            selections = selected[coordinate]
            forced: list[str] = []
            for s in selections:
                if s.reason == SelectionReason.FORCED and not any(
                    compare_versions(s.version, seen) == 0 for seen in forced
                ):
                    forced.append(s.version)
            if len(forced) > 1:
                raise ConflictError(str(coordinate), WORKSPACE_SCOPE, forced)

            version = forced[0] if forced else highest_version([s.version for s in selections])
            if all(compare_versions(s.version, version) == 0 for s in selections):
                continue

            target = pins if forced else floors
            if target.get(coordinate) != version:
                target[coordinate] = version
                changed = True
        return changed

    def _resolved_module(self, manifest: ModuleManifest, resolutions: dict[str, Resolution]) -> ResolvedModule:
        for configuration, resolution in sorted(resolutions.items()):
            for coordinate in sorted(resolution.excluded):
                logger.debug(f"{manifest.name}/{configuration}: excluded {coordinate}")

        return ResolvedModule(
            name=manifest.name,
            directory=manifest.directory,
            plugins=manifest.plugins,
            source_sets=MappingProxyType(dict(manifest.source_sets)),
            dependencies=manifest.dependencies,
            project_dependencies=tuple(sorted({r.project for r in manifest.project_dependencies})),
            resolutions=MappingProxyType(
                {c: ConfigurationResolution.from_resolution(r) for c, r in sorted(resolutions.items())}
            ),
            artifact=manifest.artifact,
            artifact_id=manifest.artifact_id,
        )
