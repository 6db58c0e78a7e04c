"""Build plugin management and module graph construction.

Provides functions for working with build plugins:
    from buildgraph.graph import (
        get_registered_build_plugins,
        apply_build_plugin,
    )

Bundled plugins:
- java: Java sources and resources
- kotlin: Kotlin sources
- protobuf: Proto sources and generated Java/gRPC code
- mc-java: Spine model compiler output
"""

from __future__ import annotations

from typing import Any

from buildgraph.logging import get_logger
from buildgraph.models.plugin import BuildPluginInfo

logger = get_logger(__name__)

# Track registered build plugins
_registered_build_plugins: dict[str, BuildPluginInfo] = {}


def _register_build_plugins(pm) -> int:
    """Register build plugins from plugins.

    Called by initialize_plugins() in buildgraph.plugins.

    Args:
        pm: The pluggy PluginManager instance

    Returns:
        Number of registered build plugins
    """
    global _registered_build_plugins
    _registered_build_plugins = {}

    for plugin_data in pm.hook.register_build_plugins():
        if plugin_data:
            info = BuildPluginInfo.from_dict(plugin_data)
            _registered_build_plugins[info.name] = info
            logger.debug(f"Registered build plugin: {info.name}")

    return len(_registered_build_plugins)


def _reset_build_plugins() -> None:
    """Reset build plugin registry.

    Called by reset_plugins() in buildgraph.plugins.
    """
    global _registered_build_plugins
    _registered_build_plugins = {}


def get_registered_build_plugins() -> dict[str, BuildPluginInfo]:
    """Get all registered build plugins.

    Returns:
        Dictionary mapping plugin id to BuildPluginInfo.
    """
    from buildgraph.plugins import initialize_plugins

    initialize_plugins()
    return _registered_build_plugins.copy()


def apply_build_plugin(plugin_id: str, module: dict[str, Any]) -> dict[str, Any] | None:
    """Ask the plugins for the contribution of ``plugin_id`` to a module.

    Args:
        plugin_id: Plugin id declared by the module
        module: Module as dict (ModuleManifest.to_dict())

    Returns:
        Manifest fragment, or None if no plugin handled the id.
    """
    import buildgraph
    from buildgraph.plugins import initialize_plugins, pm

    initialize_plugins()

    if plugin_id not in _registered_build_plugins:
        logger.warning(f"Build plugin '{plugin_id}' not registered")
        return None

    results = pm.hook.apply_plugin(plugin_id=plugin_id, module=module, buildgraph=buildgraph)

    for result in results:
        if result is not None:
            return result

    logger.warning(f"No plugin handled build plugin '{plugin_id}'")
    return None


__all__ = [
    "get_registered_build_plugins",
    "apply_build_plugin",
]
