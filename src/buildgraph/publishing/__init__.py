"""Publisher plugin management.

Provides functions for working with publishers:
    from buildgraph.publishing import (
        get_registered_publishers,
        publisher_for_scheme,
        publish_artifact,
    )

Bundled publishers:
- file: Local directory repositories (``file://`` URLs or plain paths)
- http: Remote repositories over HTTP(S) PUT
"""

from __future__ import annotations

from typing import Any

from buildgraph.config import PUBLISH_TIMEOUT_SECONDS
from buildgraph.env import Credentials
from buildgraph.errors import PublishError
from buildgraph.logging import get_logger
from buildgraph.models.plugin import PublisherInfo

logger = get_logger(__name__)

# Track registered publishers
_registered_publishers: dict[str, PublisherInfo] = {}


def _register_publishers(pm) -> int:
    """Register publishers from plugins.

    Called by initialize_plugins() in buildgraph.plugins.

    Args:
        pm: The pluggy PluginManager instance

    Returns:
        Number of registered publishers
    """
    global _registered_publishers
    _registered_publishers = {}

    for publisher_data in pm.hook.register_publishers():
        if publisher_data:
            info = PublisherInfo.from_dict(publisher_data)
            _registered_publishers[info.name] = info
            logger.debug(f"Registered publisher: {info.name} ({', '.join(info.schemes)})")

    return len(_registered_publishers)


def _reset_publishers() -> None:
    """Reset publisher registry.

    Called by reset_plugins() in buildgraph.plugins.
    """
    global _registered_publishers
    _registered_publishers = {}


def get_registered_publishers() -> dict[str, PublisherInfo]:
    """Get all registered publishers.

    Returns:
        Dictionary mapping publisher name to PublisherInfo.
    """
    from buildgraph.plugins import initialize_plugins

    initialize_plugins()
    return _registered_publishers.copy()


def publisher_for_scheme(scheme: str) -> PublisherInfo | None:
    """The publisher handling a URL scheme, if any."""
    for info in get_registered_publishers().values():
        if scheme in info.schemes:
            return info
    return None


def publish_artifact(
    scheme: str,
    target: str,
    location: str,
    payload: bytes,
    digest: str,
    credentials: Credentials | None = None,
    allow_overwrite: bool = False,
    timeout: int = PUBLISH_TIMEOUT_SECONDS,
) -> dict[str, Any]:
    """Upload artifact bytes through the publisher registered for ``scheme``.

    Returns:
        Result dict from the publisher

    Raises:
        PublishError: If no publisher handles the scheme or the upload fails
    """
    from buildgraph.plugins import pm

    if publisher_for_scheme(scheme) is None:
        raise PublishError(target, f"No publisher for '{scheme}' URLs")

    results = pm.hook.publish_artifact(
        scheme=scheme,
        target=target,
        location=location,
        payload=payload,
        digest=digest,
        credentials=credentials,
        allow_overwrite=allow_overwrite,
        timeout=timeout,
    )

    for result in results:
        if result is not None:
            return result

    raise PublishError(target, f"No plugin handled '{scheme}' publishing")


__all__ = [
    "get_registered_publishers",
    "publisher_for_scheme",
    "publish_artifact",
]
