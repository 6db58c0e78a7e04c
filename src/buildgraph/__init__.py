"""buildgraph: compose multi-module builds into reproducible plans and publish their artifacts."""

import pluggy

from buildgraph.config import __version__
from buildgraph.graph.sources import source_fragment
from buildgraph.logging import get_logger

# Convenience export for plugins: from buildgraph import hookimpl
hookimpl = pluggy.HookimplMarker("buildgraph")

__all__ = [
    "__version__",
    "hookimpl",
    "source_fragment",
    "get_logger",
]
