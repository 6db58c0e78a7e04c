"""Configuration constants for buildgraph."""

from pathlib import Path

# Version
__version__ = "0.1.0"

# Workspace layout (relative to the workspace root)
WORKSPACE_MANIFEST = "buildgraph.toml"
"""Root manifest declaring project coordinates, rules, modules and targets"""

MODULE_MANIFEST = "module.toml"
"""Per-module manifest file name"""

DEFAULT_CATALOG = Path("gradle") / "libs.versions.toml"
"""Version catalog location used when the root manifest does not name one"""

DEFAULT_LOCK_FILE = "buildgraph.lock"
"""Dependency lock written by the build command"""

BUILD_DIR = "build"
"""Directory (inside each module) holding built artifacts"""

# Dependency defaults
DEFAULT_CONFIGURATION = "implementation"
"""Configuration assigned to dependencies declared without one"""

ALL_CONFIGURATIONS = "*"
"""Scope matching every configuration"""

KNOWN_CONFIGURATIONS = (
    "api",
    "implementation",
    "compileOnly",
    "runtimeOnly",
    "annotationProcessor",
    "testImplementation",
    "testRuntimeOnly",
    "buildscript",
)
"""Configurations accepted in module manifests"""

# Source sets
DEFAULT_SOURCE_SETS = ("main", "test")
"""Source sets every module has, even when not declared"""

# Publishing
DEFAULT_PUBLISH_WORKERS = 4
"""Maximum number of targets published in parallel"""

PUBLISH_TIMEOUT_SECONDS = 120
"""Timeout for a single HTTP upload (2 minutes)"""

DEFAULT_ARTIFACT_EXTENSION = "jar"
"""Extension of the artifact published for a module"""
