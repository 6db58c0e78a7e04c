"""Bundled Java plugin.

Adds ``src/<set>/java`` and ``src/<set>/resources`` to every source set of
the module. Usage in ``module.toml``::

    plugins = ["java"]
"""

from buildgraph import hookimpl

PLUGIN_ID = "java"


@hookimpl
def register_build_plugins() -> dict:
    """Register the Java plugin."""
    return {
        "name": PLUGIN_ID,
        "description": "Java sources and resources under src/<set>",
    }


@hookimpl
def apply_plugin(plugin_id, module, buildgraph) -> dict | None:
    if plugin_id != PLUGIN_ID:
        return None
    return buildgraph.source_fragment(module, authored=["java"], resources=True)
