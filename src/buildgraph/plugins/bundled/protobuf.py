"""Bundled Protobuf plugin.

Proto definitions live in ``src/<set>/proto``. The protobuf compiler and its
gRPC plugin write into ``generated/<set>/java`` and ``generated/<set>/grpc``,
which are appended to the source path after the authored directories.
"""

from buildgraph import hookimpl

PLUGIN_ID = "protobuf"

GENERATED_DIRS = ["java", "grpc"]
"""Output directories of protoc and protoc-gen-grpc-java"""


@hookimpl
def register_build_plugins() -> dict:
    """Register the Protobuf plugin."""
    return {
        "name": PLUGIN_ID,
        "description": "Proto sources with generated Java and gRPC code",
    }


@hookimpl
def apply_plugin(plugin_id, module, buildgraph) -> dict | None:
    """Declare the proto sources and the generated code directories."""
    if plugin_id != PLUGIN_ID:
        return None

    logger = buildgraph.get_logger(__name__)
    logger.debug(f"Protobuf output for '{module['name']}': {', '.join(GENERATED_DIRS)}")

    return buildgraph.source_fragment(module, authored=["proto"], generated=GENERATED_DIRS)
