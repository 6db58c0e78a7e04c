"""Dependency resolution: version ordering, catalog lookups and conflict resolution."""

from buildgraph.resolution.catalog import VersionCatalog
from buildgraph.resolution.metadata import MetadataIndex
from buildgraph.resolution.resolver import ConflictResolver, Resolution, Selection, SelectionReason
from buildgraph.resolution.versions import compare_versions, highest_version

__all__ = [
    "VersionCatalog",
    "MetadataIndex",
    "ConflictResolver",
    "Resolution",
    "Selection",
    "SelectionReason",
    "compare_versions",
    "highest_version",
]
