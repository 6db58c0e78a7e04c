"""Integration tests for loading and building a workspace."""

from pathlib import Path

import pytest

from buildgraph.errors import ManifestError, UnresolvedDependency
from buildgraph.models.coordinates import Coordinate
from buildgraph.resolution.resolver import SelectionReason
from buildgraph.workspace import load_workspace

GRPC_CORE = Coordinate("io.grpc", "grpc-core")
GUAVA = Coordinate("com.google.guava", "guava")
PROTOBUF_LITE = Coordinate("com.google.protobuf", "protobuf-lite")
SPINE_BASE = Coordinate("io.spine", "spine-base")


class TestLoadWorkspace:
    """Tests for reading manifests from disk."""

    def test_manifests(self, spine_workspace: Path):
        ws = load_workspace(spine_workspace, env={})

        assert ws.manifest.group == "io.spine.tools"
        assert ws.manifest.publish_modules == ("model-check",)
        assert [m.name for m in ws.modules] == ["model-check", "model-assembler"]
        assert ws.manifest.shared_plugins == ("java",)
        assert ws.manifest.targets[0].url == str(spine_workspace.resolve() / "repo-a")
        assert len(ws.metadata) == 1
        assert ws.catalog.entry("grpc-core").version == "1.46.0"

    def test_properties_expanded(self, spine_workspace: Path):
        """Test that [versions] properties are substituted into module manifests."""
        ws = load_workspace(spine_workspace, env={})
        assembler = next(m for m in ws.modules if m.name == "model-assembler")
        assert "io.spine:spine-base:2.0.0-SNAPSHOT.91" in [str(d) for d in assembler.dependencies]

    def test_env_expanded(self, spine_workspace: Path):
        """Test that environment variables can be used in manifests."""
        (spine_workspace / "buildgraph.toml").write_text(
            (spine_workspace / "buildgraph.toml")
            .read_text()
            .replace('version = "2.0.0-SNAPSHOT.100"', 'version = "${RELEASE_VERSION:-2.0.0}"')
        )
        assert load_workspace(spine_workspace, env={}).manifest.version == "2.0.0"
        assert load_workspace(spine_workspace, env={"RELEASE_VERSION": "2.1.0"}).manifest.version == "2.1.0"

    def test_dotenv(self, spine_workspace: Path, monkeypatch):
        """Test that credentials come from the workspace .env file."""
        monkeypatch.delenv("CLOUD_REPO_TOKEN", raising=False)
        (spine_workspace / ".env").write_text("CLOUD_REPO_TOKEN=secret\n")
        assert load_workspace(spine_workspace).env["CLOUD_REPO_TOKEN"] == "secret"

    def test_missing_module_manifest(self, spine_workspace: Path):
        (spine_workspace / "model-check" / "module.toml").unlink()
        with pytest.raises(ManifestError, match="File not found"):
            load_workspace(spine_workspace, env={})

    def test_invalid_toml(self, spine_workspace: Path):
        (spine_workspace / "model-check" / "module.toml").write_text("plugins = [")
        with pytest.raises(ManifestError, match="Invalid TOML"):
            load_workspace(spine_workspace, env={})

    def test_unknown_placeholder(self, spine_workspace: Path):
        (spine_workspace / "model-assembler" / "module.toml").write_text(
            '[dependencies]\nimplementation = ["io.spine:spine-base:${spineServer}"]\n'
        )
        with pytest.raises(ManifestError, match="Cannot expand variables"):
            load_workspace(spine_workspace, env={})


class TestBuildWorkspace:
    """Tests for building the plan of a workspace."""

    def test_order(self, spine_workspace: Path, fresh_plugins):
        plan = load_workspace(spine_workspace, env={}).build()
        assert plan.order == ("model-assembler", "model-check")

    def test_model_check_versions(self, spine_workspace: Path, fresh_plugins):
        """Test forced, highest and excluded versions for the published module."""
        plan = load_workspace(spine_workspace, env={}).build()
        resolution = plan.module("model-check").resolutions["implementation"]
        selections = {s.coordinate: s for s in resolution.selections}

        assert selections[GRPC_CORE].version == "1.47.0"
        assert selections[GRPC_CORE].reason == SelectionReason.FORCED
        assert selections[GUAVA].version == "31.1-jre"
        assert selections[GUAVA].reason == SelectionReason.HIGHEST
        assert selections[SPINE_BASE].version == "2.0.0-SNAPSHOT.91"
        assert PROTOBUF_LITE not in selections
        assert PROTOBUF_LITE in resolution.excluded

    def test_model_assembler_versions(self, spine_workspace: Path, fresh_plugins):
        """Test that the mc-java exclusion does not leak and guava follows the workspace."""
        plan = load_workspace(spine_workspace, env={}).build()
        versions = plan.module("model-assembler").versions("implementation")

        assert versions[GUAVA] == "31.1-jre"
        assert versions[PROTOBUF_LITE] == "3.0.1"
        assert versions[GRPC_CORE] == "1.47.0"

    def test_plugin_steps(self, spine_workspace: Path, fresh_plugins):
        plan = load_workspace(spine_workspace, env={}).build()
        assert [(s.module, s.plugin_id) for s in plan.steps] == [
            ("model-check", "subprojects"),
            ("model-check", "java"),
            ("model-check", "protobuf"),
            ("model-check", "mc-java"),
            ("model-assembler", "subprojects"),
            ("model-assembler", "java"),
        ]

    def test_subprojects_dependencies(self, spine_workspace: Path, fresh_plugins):
        """Test that shared test dependencies reach every module."""
        plan = load_workspace(spine_workspace, env={}).build()
        junit = Coordinate("junit", "junit")
        assert plan.module("model-check").versions("testImplementation") == {junit: "4.13.2"}
        assert plan.module("model-assembler").versions("testImplementation") == {junit: "4.13.2"}

    def test_artifact_id_override(self, spine_workspace: Path, fresh_plugins):
        plan = load_workspace(spine_workspace, env={}).build()
        assert plan.artifact_id("model-check") == "spine-model-check-bundle"
        assert plan.artifact_id("model-assembler") == "spine-model-assembler"

    def test_one_version_per_coordinate(self, spine_workspace: Path, fresh_plugins):
        """Test that every module sees the workspace version of each library."""
        plan = load_workspace(spine_workspace, env={}).build()
        workspace = plan.workspace_versions()
        for module in plan.modules:
            for resolution in module.resolutions.values():
                for coordinate, version in resolution.versions.items():
                    assert workspace[coordinate] == version

    def test_select_modules_pulls_in_projects(self, spine_workspace: Path, fresh_plugins):
        """Test that selecting a module also builds the modules it depends on."""
        plan = load_workspace(spine_workspace, env={}).build(["model-check"])
        assert plan.order == ("model-assembler", "model-check")

    def test_select_unknown_module(self, spine_workspace: Path, fresh_plugins):
        with pytest.raises(ManifestError, match="Unknown module"):
            load_workspace(spine_workspace, env={}).build(["server"])

    def test_source_overlap(self, spine_workspace: Path, fresh_plugins):
        """Test that a generated copy of an authored file aborts the build."""
        from buildgraph.errors import SourceOverlapError

        duplicate = spine_workspace / "model-check/generated/main/java/io/spine/model/check/ModelCheck.java"
        duplicate.parent.mkdir(parents=True)
        duplicate.write_text("class ModelCheck {}\n")

        with pytest.raises(SourceOverlapError) as exc_info:
            load_workspace(spine_workspace, env={}).build()
        assert exc_info.value.files == ["io/spine/model/check/ModelCheck.java"]

    def test_unresolved_dependency(self, spine_workspace: Path, fresh_plugins):
        (spine_workspace / "model-assembler" / "module.toml").write_text(
            '[dependencies]\nimplementation = ["libs.spine-server"]\n'
        )
        with pytest.raises(UnresolvedDependency, match="libs.spine-server"):
            load_workspace(spine_workspace, env={}).build()
