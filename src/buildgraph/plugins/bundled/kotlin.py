"""Bundled Kotlin plugin: adds ``src/<set>/kotlin`` to every source set."""

from buildgraph import hookimpl

PLUGIN_ID = "kotlin"


@hookimpl
def register_build_plugins() -> dict:
    return {
        "name": PLUGIN_ID,
        "description": "Kotlin sources under src/<set>/kotlin",
    }


@hookimpl
def apply_plugin(plugin_id, module, buildgraph) -> dict | None:
    if plugin_id != PLUGIN_ID:
        return None
    return buildgraph.source_fragment(module, authored=["kotlin"])
