"""Pytest configuration and fixtures for buildgraph tests."""

import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration after each test.

    This ensures that tests which call setup_logging() don't affect
    other tests that rely on caplog fixture for log capture.
    """
    yield

    logger = logging.getLogger("buildgraph")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def fresh_plugins():
    """Start a test with a freshly initialized plugin system."""
    from buildgraph.plugins import initialize_plugins, reset_plugins

    reset_plugins()
    initialize_plugins()
    yield
    reset_plugins()


def write_workspace(root: Path, files: dict[str, str]) -> Path:
    """Write a workspace tree from ``{relative path: content}``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def spine_workspace(tmp_path: Path) -> Path:
    """Two-module workspace modelled on the Spine model tools build."""
    return write_workspace(
        tmp_path,
        {
            "buildgraph.toml": """
force = ["io.grpc:grpc-core:1.47.0"]
exclude = ["org.gradle:*"]

[project]
group = "io.spine.tools"
version = "2.0.0-SNAPSHOT.100"
artifact_prefix = "spine-"
modules = ["model-check", "model-assembler"]
metadata = "gradle/components.toml"

[versions]
spineBase = "2.0.0-SNAPSHOT.91"

[subprojects]
plugins = ["java"]

[subprojects.dependencies]
testImplementation = ["junit:junit:4.13.2"]

[publishing]
modules = ["model-check"]

[[publishing.targets]]
name = "local"
url = "repo-a"

[[publishing.targets]]
name = "mirror"
url = "repo-b"
""",
            "gradle/libs.versions.toml": """
[versions]
grpc = "1.46.0"

[libraries]
grpc-core = { module = "io.grpc:grpc-core", version.ref = "grpc" }
guava = "com.google.guava:guava:31.1-jre"
""",
            "gradle/components.toml": """
["io.spine:spine-base:2.0.0-SNAPSHOT.91"]
dependencies = ["com.google.guava:guava:30.0-jre", "com.google.protobuf:protobuf-lite:3.0.1"]
""",
            "model-assembler/module.toml": """
[dependencies]
implementation = ["io.spine:spine-base:${spineBase}", "libs.grpc-core"]
""",
            "model-assembler/src/main/java/io/spine/model/assemble/AssignLookup.java": "class AssignLookup {}\n",
            "model-check/module.toml": """
plugins = ["protobuf", "mc-java"]
artifact = "build/libs/model-check.jar"
artifact_id = "model-check-bundle"

[dependencies]
implementation = [":model-assembler", "libs.guava"]
""",
            "model-check/src/main/java/io/spine/model/check/ModelCheck.java": "class ModelCheck {}\n",
            "model-check/generated/main/spine/io/spine/model/check/Rule.java": "class Rule {}\n",
            "model-check/build/libs/model-check.jar": "jar-bytes",
        },
    )
