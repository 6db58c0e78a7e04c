"""Metadata returned by plugin registration hooks."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class BuildPluginInfo:
    """A build plugin that can be applied to modules.

    Plugins return a dict from register_build_plugins() which is
    converted to this class via from_dict().
    """

    name: str
    """Plugin id used in module manifests (e.g., 'java', 'mc-java')"""

    description: str | None = None
    """Human-readable description"""

    requires: list[str] = field(default_factory=list)
    """Plugin ids that must be applied earlier in the same module"""

    @classmethod
    def from_dict(cls, d: dict) -> BuildPluginInfo:
        """Create BuildPluginInfo from plugin dict.

        Args:
            d: Dict with plugin info fields

        Returns:
            BuildPluginInfo instance
        """
        return cls(
            name=d["name"],
            description=d.get("description"),
            requires=list(d.get("requires", [])),
        )


@dataclass
class PublisherInfo:
    """A transport able to upload artifacts to repositories of some URL schemes."""

    name: str
    """Publisher identifier (e.g., 'file', 'http')"""

    schemes: list[str] = field(default_factory=list)
    """URL schemes handled (e.g., ['http', 'https'])"""

    description: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> PublisherInfo:
        return cls(
            name=d["name"],
            schemes=list(d.get("schemes", [])),
            description=d.get("description"),
        )
