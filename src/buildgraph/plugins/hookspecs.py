"""Hook specifications for buildgraph plugins.

This module defines the hooks that plugins can implement to transform
modules and to publish artifacts. Plugins use the @hookimpl decorator to
implement these hooks.

Example plugin implementation:

    from buildgraph import hookimpl

    @hookimpl
    def register_build_plugins():
        return {
            "name": "groovy",
            "description": "Groovy sources under src/<set>/groovy",
        }

    @hookimpl
    def apply_plugin(plugin_id, module, buildgraph):
        if plugin_id != "groovy":
            return None
        return buildgraph.source_fragment(module, authored=["groovy"])
"""

from types import ModuleType
from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("buildgraph")


class BuildPluginSpec:
    """Hook specifications for build plugins.

    A build plugin turns a plugin id from a module manifest into an explicit
    contribution to that module: extra source directories, dependencies,
    forced versions and exclusions. Plugins never mutate the module; the
    graph builder merges the returned fragment and records it as a
    transformation step.
    """

    @hookspec
    def register_build_plugins(self) -> dict:  # type: ignore[empty-body]
        """Register a build plugin provided by this plugin module.

        Returns:
            Dict with plugin info:
                - name: Plugin id used in module manifests (required)
                - description: Human-readable description
                - requires: Plugin ids that must be applied earlier in the module
        """
        ...

    @hookspec
    def apply_plugin(
        self,
        plugin_id: str,
        module: dict[str, Any],
        buildgraph: ModuleType,
    ) -> dict | None:
        """Compute what a plugin contributes to a module.

        Args:
            plugin_id: Plugin id being applied (e.g., "protobuf")
            module: Module as dict (converted from ModuleManifest), including
                the contributions of plugins applied before this one
            buildgraph: The buildgraph module with helper functions:
                - buildgraph.source_fragment(module, authored=..., generated=..., resources=...)
                - buildgraph.get_logger(name)

        Returns:
            Manifest fragment with any of the keys ``sources``,
            ``dependencies``, ``force`` and ``exclude``, shaped like the
            corresponding ``module.toml`` sections. None if this plugin
            doesn't handle the id.
        """


class PublisherSpec:
    """Hook specifications for publishing transports."""

    @hookspec
    def register_publishers(self) -> dict:  # type: ignore[empty-body]
        """Register a publisher.

        Returns:
            Dict with publisher info:
                - name: Publisher identifier (required)
                - schemes: URL schemes handled (required)
                - description: Human-readable description
        """
        ...

    @hookspec
    def publish_artifact(
        self,
        scheme: str,
        target: str,
        location: str,
        payload: bytes,
        digest: str,
        credentials: Any,
        allow_overwrite: bool,
        timeout: int,
    ) -> dict | None:
        """Upload artifact bytes to one repository location.

        Args:
            scheme: URL scheme of the target (e.g., "https", "file")
            target: Target name, for error messages
            location: Full URL (or path) the artifact is written to
            payload: Artifact bytes, identical for every target
            digest: SHA-256 hex digest of ``payload``
            credentials: buildgraph.env.Credentials, or None
            allow_overwrite: Replace an artifact that already exists
            timeout: Maximum time for the upload in seconds

        Returns:
            Dict with result info:
                - status: "success" or "skipped"
                - location: Where the artifact was written
                - message: Optional detail
            None if this plugin doesn't handle the scheme.

        Raises:
            PublishError: If the upload fails or the version already exists
                and ``allow_overwrite`` is False
        """
