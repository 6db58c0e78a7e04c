"""Pluggy manager shared by build plugins and publishers.

Bundled build plugins (java, kotlin, protobuf, mc-java) and publishers
(file, http) are registered first; third-party packages add more through
the ``buildgraph`` entry point group. Each registration hook fills a
registry in its domain package:

    buildgraph.graph        register_build_plugins -> get_registered_build_plugins()
    buildgraph.publishing   register_publishers    -> get_registered_publishers()
"""

import importlib

import pluggy

from buildgraph.logging import get_logger
from buildgraph.plugins.hookspecs import BuildPluginSpec, PublisherSpec

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "buildgraph"
"""Entry point group (and pluggy project name) of installable plugins"""

BUNDLED_BUILD_PLUGINS = (
    "buildgraph.plugins.bundled.java",
    "buildgraph.plugins.bundled.kotlin",
    "buildgraph.plugins.bundled.protobuf",
    "buildgraph.plugins.bundled.mc_java",
)

BUNDLED_PUBLISHERS = (
    "buildgraph.publishing.local",
    "buildgraph.publishing.remote",
)

pm = pluggy.PluginManager(ENTRY_POINT_GROUP)
pm.add_hookspecs(BuildPluginSpec)
pm.add_hookspecs(PublisherSpec)

_initialized: bool = False


def _register_bundled() -> None:
    for module_name in (*BUNDLED_BUILD_PLUGINS, *BUNDLED_PUBLISHERS):
        pm.register(importlib.import_module(module_name), name=module_name)
        logger.debug(f"Registered bundled plugin module {module_name}")


def _register_installed() -> None:
    # A broken third-party package must not take the bundled plugins down
    try:
        count = pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
    except Exception as e:
        logger.warning(f"Could not load installed plugins: {e}")
        return
    if count:
        logger.debug(f"Loaded {count} installed plugin(s)")


def initialize_plugins() -> None:
    """Register bundled and installed plugins and fill both registries.

    Calling it again does nothing until ``reset_plugins()``.
    """
    global _initialized

    if _initialized:
        return

    _register_bundled()
    _register_installed()

    from buildgraph.graph import _register_build_plugins
    from buildgraph.publishing import _register_publishers

    build_plugins = _register_build_plugins(pm)
    publishers = _register_publishers(pm)
    _initialized = True

    logger.debug(f"{build_plugins} build plugin(s) and {publishers} publisher(s) available")


def reset_plugins() -> None:
    """Unregister every plugin and empty both registries (used by tests)."""
    global _initialized

    for name, _ in pm.list_name_plugin():
        pm.unregister(name=name)

    from buildgraph.graph import _reset_build_plugins
    from buildgraph.publishing import _reset_publishers

    _reset_build_plugins()
    _reset_publishers()

    _initialized = False


__all__ = [
    "pm",
    "BUNDLED_BUILD_PLUGINS",
    "BUNDLED_PUBLISHERS",
    "initialize_plugins",
    "reset_plugins",
]
