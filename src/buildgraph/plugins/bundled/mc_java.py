"""Bundled Spine model compiler (mc-java) plugin.

The model compiler post-processes the protobuf output, so the plugin must be
declared after ``protobuf``::

    plugins = ["java", "protobuf", "mc-java"]

It adds ``generated/<set>/spine`` to the source path and keeps the lite
protobuf runtime off the classpath, since it clashes with the full runtime
the generated code is compiled against.
"""

from buildgraph import hookimpl

PLUGIN_ID = "mc-java"

PROTOBUF_LITE = "com.google.protobuf:protobuf-lite"


@hookimpl
def register_build_plugins() -> dict:
    """Register the model compiler plugin."""
    return {
        "name": PLUGIN_ID,
        "description": "Spine model compiler output under generated/<set>/spine",
        "requires": ["protobuf"],
    }


@hookimpl
def apply_plugin(plugin_id, module, buildgraph) -> dict | None:
    if plugin_id != PLUGIN_ID:
        return None

    fragment = buildgraph.source_fragment(module, generated=["spine"])
    fragment["exclude"] = [PROTOBUF_LITE]
    return fragment
