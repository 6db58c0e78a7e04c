"""Tests for the module graph builder."""

import dataclasses
from pathlib import Path

import pytest

from buildgraph.errors import ConflictError, ManifestError, SourceOverlapError, UnresolvedDependency
from buildgraph.graph.builder import ModuleGraphBuilder, project_graph
from buildgraph.models.coordinates import Coordinate, DependencyReference, ForcedVersionRule
from buildgraph.models.manifest import ModuleManifest
from buildgraph.resolution.catalog import VersionCatalog
from buildgraph.resolution.metadata import MetadataIndex
from buildgraph.resolution.resolver import SelectionReason

PROTOBUF_LITE = Coordinate("com.google.protobuf", "protobuf-lite")
LIB = Coordinate("org.example", "lib")


def module(root: Path, name: str, **data) -> ModuleManifest:
    return ModuleManifest.from_dict(data, root / name)


@pytest.fixture
def builder() -> ModuleGraphBuilder:
    catalog = VersionCatalog.from_dict(
        {"libraries": {"guava": "com.google.guava:guava:31.1-jre", "junit": "junit:junit:4.13.2"}}
    )
    return ModuleGraphBuilder(catalog, group="io.spine.tools", version="2.0.0", artifact_prefix="spine-")


class TestPluginApplication:
    """Tests for plugin transformations."""

    def test_steps_in_declaration_order(self, tmp_path: Path, builder, fresh_plugins):
        """Test that every applied plugin is recorded once, in order."""
        plan = builder.build([module(tmp_path, "core", plugins=["java", "protobuf", "mc-java"])])

        assert [(s.order, s.plugin_id) for s in plan.steps] == [(1, "java"), (2, "protobuf"), (3, "mc-java")]
        assert all(s.module == "core" for s in plan.steps)

    def test_steps_numbered_across_modules(self, tmp_path: Path, builder, fresh_plugins):
        """Test that step order is global across the workspace."""
        plan = builder.build(
            [module(tmp_path, "a", plugins=["java"]), module(tmp_path, "b", plugins=["java", "kotlin"])]
        )
        assert [(s.order, s.module, s.plugin_id) for s in plan.steps] == [
            (1, "a", "java"),
            (2, "b", "java"),
            (3, "b", "kotlin"),
        ]

    def test_source_path_order(self, tmp_path: Path, builder, fresh_plugins):
        """Test that generated directories follow authored ones."""
        plan = builder.build([module(tmp_path, "core", plugins=["java", "protobuf", "mc-java"])])
        main = plan.module("core").source_sets["main"]
        assert [str(p) for p in main.source_path] == [
            "src/main/java",
            "src/main/proto",
            "generated/main/java",
            "generated/main/grpc",
            "generated/main/spine",
        ]

    def test_mc_java_before_protobuf(self, tmp_path: Path, builder, fresh_plugins):
        """Test that plugin ordering requirements are enforced."""
        with pytest.raises(ManifestError, match="must be applied after protobuf"):
            builder.build([module(tmp_path, "core", plugins=["java", "mc-java", "protobuf"])])

    def test_unknown_plugin(self, tmp_path: Path, builder, fresh_plugins):
        with pytest.raises(ManifestError, match="unknown plugin 'scala'"):
            builder.build([module(tmp_path, "core", plugins=["scala"])])

    def test_mc_java_excludes_protobuf_lite(self, tmp_path: Path, builder, fresh_plugins):
        """Test that the plugin's exclusion applies to the module's resolution."""
        plan = builder.build(
            [
                module(
                    tmp_path,
                    "core",
                    plugins=["java", "protobuf", "mc-java"],
                    dependencies={"implementation": ["com.google.protobuf:protobuf-lite:3.0.1", "libs.guava"]},
                )
            ]
        )
        resolution = plan.module("core").resolutions["implementation"]
        assert PROTOBUF_LITE not in resolution.versions
        assert resolution.excluded == (PROTOBUF_LITE,)

    def test_source_overlap(self, tmp_path: Path, builder, fresh_plugins):
        """Test that a file in both authored and generated trees aborts the build."""
        for tree in ("src/main/java", "generated/main/java"):
            path = tmp_path / "core" / tree / "io" / "spine" / "X.java"
            path.parent.mkdir(parents=True)
            path.write_text("class X {}")

        with pytest.raises(SourceOverlapError, match="io/spine/X.java"):
            builder.build([module(tmp_path, "core", plugins=["java", "protobuf"])])


class TestModuleOrder:
    """Tests for topological ordering."""

    def test_dependencies_first_ties_by_name(self, tmp_path: Path, builder, fresh_plugins):
        """Test that ready modules are ordered by name."""
        plan = builder.build(
            [
                module(tmp_path, "b"),
                module(tmp_path, "a", dependencies={"implementation": [":c"]}),
                module(tmp_path, "c"),
            ]
        )
        assert plan.order == ("b", "c", "a")

    def test_order_independent_of_declaration(self, tmp_path: Path, builder, fresh_plugins):
        """Test that declaration order does not change the plan."""
        first = builder.build([module(tmp_path, "x"), module(tmp_path, "y")])
        second = builder.build([module(tmp_path, "y"), module(tmp_path, "x")])
        assert first.order == second.order == ("x", "y")

    def test_cycle(self, tmp_path: Path, builder, fresh_plugins):
        with pytest.raises(ManifestError, match="cycle among: a, b"):
            builder.build(
                [
                    module(tmp_path, "a", dependencies={"implementation": [":b"]}),
                    module(tmp_path, "b", dependencies={"api": [":a"]}),
                ]
            )

    def test_self_dependency(self, tmp_path: Path, builder, fresh_plugins):
        with pytest.raises(ManifestError, match="depends on itself"):
            builder.build([module(tmp_path, "a", dependencies={"implementation": [":a"]})])

    def test_unknown_project(self, tmp_path: Path, builder, fresh_plugins):
        """Test that project references must name a module of the build."""
        with pytest.raises(ManifestError, match="unknown project ':missing'"):
            builder.build([module(tmp_path, "a", dependencies={"implementation": [":missing"]})])

    def test_project_graph(self, tmp_path: Path):
        """Test that edges run from a dependency to the module using it."""
        graph = project_graph(
            [module(tmp_path, "a", dependencies={"implementation": [":b"]}), module(tmp_path, "b")]
        )
        assert sorted(graph.nodes) == ["a", "b"]
        assert list(graph.edges) == [("b", "a")]

    def test_duplicate_module_names(self, tmp_path: Path, builder, fresh_plugins):
        with pytest.raises(ManifestError, match="Duplicate"):
            builder.build([module(tmp_path, "a"), module(tmp_path, "a")])


class TestResolution:
    """Tests for per-module version reconciliation."""

    def test_project_dependencies_propagate(self, tmp_path: Path, builder, fresh_plugins):
        """Test that implementation and api dependencies flow to dependents, test ones do not."""
        plan = builder.build(
            [
                module(
                    tmp_path,
                    "base",
                    dependencies={
                        "implementation": ["com.google.guava:guava:30.0-jre"],
                        "testImplementation": ["libs.junit"],
                    },
                ),
                module(tmp_path, "app", dependencies={"implementation": [":base", "libs.guava"]}),
            ]
        )

        app = plan.module("app")
        selection = app.resolutions["implementation"].selections[0]
        assert selection.coordinate == Coordinate("com.google.guava", "guava")
        assert selection.version == "31.1-jre"
        assert selection.reason == SelectionReason.HIGHEST
        assert "testImplementation" not in app.resolutions
        assert app.project_dependencies == ("base",)

    def test_workspace_forced_rule(self, tmp_path: Path, fresh_plugins):
        """Test that workspace rules apply to every module."""
        builder = ModuleGraphBuilder(
            VersionCatalog(),
            forced_rules=[ForcedVersionRule.parse("io.grpc:grpc-core:1.47.0")],
        )
        plan = builder.build(
            [module(tmp_path, "a", dependencies={"implementation": ["io.grpc:grpc-core:1.50.0"]})]
        )
        assert plan.module("a").versions("implementation") == {Coordinate("io.grpc", "grpc-core"): "1.47.0"}

    def test_unresolved_dependency(self, tmp_path: Path, builder, fresh_plugins):
        """Test that a dependency without any version aborts the build."""
        with pytest.raises(UnresolvedDependency) as exc_info:
            builder.build([module(tmp_path, "a", dependencies={"implementation": ["io.grpc:grpc-core"]})])
        assert exc_info.value.module == "a"

    def test_unknown_configuration_is_empty(self, tmp_path: Path, builder, fresh_plugins):
        plan = builder.build([module(tmp_path, "a")])
        assert plan.module("a").versions("implementation") == {}


class TestBuildPlan:
    """Tests for the built plan."""

    def test_plan_is_immutable(self, tmp_path: Path, builder, fresh_plugins):
        """Test that the plan cannot be changed after it is built."""
        plan = builder.build(
            [module(tmp_path, "a", plugins=["java"], dependencies={"implementation": ["libs.guava"]})]
        )

        with pytest.raises(dataclasses.FrozenInstanceError):
            plan.version = "3.0.0"
        with pytest.raises(TypeError):
            plan.module("a").resolutions["api"] = None
        with pytest.raises(TypeError):
            plan.steps[0].changes["sources"] = {}

    def test_artifact_id_and_metadata(self, tmp_path: Path, builder, fresh_plugins):
        plan = builder.build([module(tmp_path, "model-check")])
        assert plan.group == "io.spine.tools"
        assert plan.version == "2.0.0"
        assert plan.artifact_id("model-check") == "spine-model-check"

    def test_unknown_module(self, tmp_path: Path, builder, fresh_plugins):
        plan = builder.build([module(tmp_path, "a")])
        with pytest.raises(KeyError):
            plan.module("b")

    def test_artifact_id_override(self, tmp_path: Path, builder, fresh_plugins):
        """Test that a module can publish under its own artifact id."""
        plan = builder.build([module(tmp_path, "model-check", artifact_id="model-check-bundle")])
        assert plan.artifact_id("model-check") == "spine-model-check-bundle"

    def test_workspace_versions(self, tmp_path: Path, builder, fresh_plugins):
        """Test that the workspace reports one version per coordinate."""
        plan = builder.build(
            [
                module(tmp_path, "a", dependencies={"implementation": ["com.google.guava:guava:30.0-jre"]}),
                module(tmp_path, "b", dependencies={"implementation": ["libs.guava"]}),
            ]
        )
        assert plan.workspace_versions() == {Coordinate("com.google.guava", "guava"): "31.1-jre"}


class TestWorkspaceAlignment:
    """Tests for one version per coordinate across modules."""

    def test_highest_across_modules(self, tmp_path: Path, builder, fresh_plugins):
        """Test that module A asking for lib:1.0 and module B for lib:2.0 both get 2.0."""
        plan = builder.build(
            [
                module(tmp_path, "a", dependencies={"implementation": ["org.example:lib:1.0"]}),
                module(tmp_path, "b", dependencies={"implementation": ["org.example:lib:2.0"]}),
            ]
        )

        selection = plan.module("a").resolutions["implementation"].selections[0]
        assert selection.version == "2.0"
        assert selection.reason == SelectionReason.HIGHEST
        assert selection.requested == ("1.0",)
        assert plan.module("b").versions("implementation") == {LIB: "2.0"}

    def test_across_configurations(self, tmp_path: Path, builder, fresh_plugins):
        """Test that a test-only request lifts the main configuration too."""
        plan = builder.build(
            [
                module(
                    tmp_path,
                    "a",
                    dependencies={
                        "implementation": ["org.example:lib:1.0"],
                        "testImplementation": ["org.example:lib:1.5"],
                    },
                )
            ]
        )
        assert plan.module("a").versions("implementation") == {LIB: "1.5"}

    def test_aligned_version_brings_its_dependencies(self, tmp_path: Path, fresh_plugins):
        """Test that the aligned version's metadata is walked in every module."""
        metadata = MetadataIndex.from_dict({"org.example:lib:2.0": {"dependencies": ["org.example:helper:1.0"]}})
        builder = ModuleGraphBuilder(VersionCatalog(), metadata)
        plan = builder.build(
            [
                module(tmp_path, "a", dependencies={"implementation": ["org.example:lib:1.0"]}),
                module(tmp_path, "b", dependencies={"implementation": ["org.example:lib:2.0"]}),
            ]
        )
        assert plan.module("a").versions("implementation") == {
            Coordinate("org.example", "helper"): "1.0",
            LIB: "2.0",
        }

    def test_module_force_pins_other_modules(self, tmp_path: Path, builder, fresh_plugins):
        """Test that a version forced in one module applies wherever the coordinate appears."""
        plan = builder.build(
            [
                module(
                    tmp_path,
                    "a",
                    force=["org.example:lib:1.5"],
                    dependencies={"implementation": ["org.example:lib:1.0"]},
                ),
                module(tmp_path, "b", dependencies={"implementation": ["org.example:lib:2.0"]}),
            ]
        )
        assert plan.module("b").versions("implementation") == {LIB: "1.5"}
        assert plan.module("b").resolutions["implementation"].selections[0].reason == SelectionReason.FORCED
        assert plan.workspace_versions() == {LIB: "1.5"}

    def test_modules_forcing_different_versions(self, tmp_path: Path, builder, fresh_plugins):
        """Test that two modules forcing different versions of one coordinate conflict."""
        with pytest.raises(ConflictError) as exc_info:
            builder.build(
                [
                    module(
                        tmp_path,
                        "a",
                        force=["org.example:lib:1.5"],
                        dependencies={"implementation": ["org.example:lib:1.0"]},
                    ),
                    module(
                        tmp_path,
                        "b",
                        force=["org.example:lib:1.6"],
                        dependencies={"implementation": ["org.example:lib:2.0"]},
                    ),
                ]
            )
        assert exc_info.value.scope == "workspace"
        assert exc_info.value.versions == ["1.5", "1.6"]

    def test_exclusions_stay_per_module(self, tmp_path: Path, builder, fresh_plugins):
        """Test that aligning versions does not add a coordinate a module excludes."""
        plan = builder.build(
            [
                module(
                    tmp_path,
                    "a",
                    exclude=["org.example:lib"],
                    dependencies={"implementation": ["org.example:lib:1.0", "libs.guava"]},
                ),
                module(tmp_path, "b", dependencies={"implementation": ["org.example:lib:2.0"]}),
            ]
        )
        assert LIB not in plan.module("a").versions("implementation")
        assert plan.module("b").versions("implementation") == {LIB: "2.0"}


class TestSubprojects:
    """Tests for plugins and dependencies shared by every module."""

    @pytest.fixture
    def shared_builder(self) -> ModuleGraphBuilder:
        catalog = VersionCatalog.from_dict({"libraries": {"junit": "junit:junit:4.13.2"}})
        return ModuleGraphBuilder(
            catalog,
            shared_plugins=["java"],
            shared_dependencies=[
                DependencyReference.parse(":base", "api"),
                DependencyReference.parse("libs.junit", "testImplementation"),
            ],
        )

    def test_shared_plugins_applied_first(self, tmp_path: Path, shared_builder, fresh_plugins):
        """Test that shared plugins run before the module's own and are recorded as steps."""
        plan = shared_builder.build([module(tmp_path, "base"), module(tmp_path, "core", plugins=["kotlin"])])

        assert [(s.module, s.plugin_id) for s in plan.steps] == [
            ("base", "subprojects"),
            ("base", "java"),
            ("core", "subprojects"),
            ("core", "java"),
            ("core", "kotlin"),
        ]
        assert plan.module("core").plugins == ("java", "kotlin")

    def test_shared_dependencies(self, tmp_path: Path, shared_builder, fresh_plugins):
        """Test that shared dependencies reach every module, skipping a self reference."""
        plan = shared_builder.build([module(tmp_path, "base"), module(tmp_path, "core")])

        assert plan.order == ("base", "core")
        assert plan.module("core").project_dependencies == ("base",)
        assert plan.module("base").project_dependencies == ()
        assert plan.module("base").versions("testImplementation") == {Coordinate("junit", "junit"): "4.13.2"}
        step = plan.steps[0]
        assert step.changes["dependencies"]["testImplementation"] == ("libs.junit",)
        assert "api" not in step.changes["dependencies"]
