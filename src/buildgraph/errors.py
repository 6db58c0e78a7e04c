"""Exceptions raised while composing and publishing a build.

Resolution-time errors (``UnresolvedDependency``, ``ConflictError``,
``SourceOverlapError`` and ``ManifestError``) abort the build before any
output is written. ``PublishError`` is raised per target and is captured by
the publication planner so that sibling targets keep going.
"""

from __future__ import annotations

from pathlib import Path


class BuildGraphError(Exception):
    """Base class for all buildgraph errors."""


class ManifestError(BuildGraphError):
    """A manifest is malformed or references something that does not exist."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class UnresolvedDependency(BuildGraphError):
    """No version is declared anywhere in scope for a dependency."""

    def __init__(self, reference: str, module: str | None = None):
        self.reference = reference
        self.module = module
        where = f" (module '{module}')" if module else ""
        super().__init__(f"No version declared for '{reference}'{where}")


class ConflictError(BuildGraphError):
    """Two forced version rules disagree for one coordinate in one scope."""

    def __init__(self, coordinate: str, scope: str, versions: list[str]):
        self.coordinate = coordinate
        self.scope = scope
        self.versions = sorted(set(versions))
        super().__init__(
            f"Conflicting forced versions for '{coordinate}' in scope '{scope}': "
            f"{', '.join(self.versions)}"
        )


class SourceOverlapError(BuildGraphError):
    """Authored and generated source trees declare the same logical file."""

    def __init__(self, module: str, source_set: str, files: list[str]):
        self.module = module
        self.source_set = source_set
        self.files = sorted(files)
        shown = ", ".join(self.files[:5])
        more = f" (+{len(self.files) - 5} more)" if len(self.files) > 5 else ""
        super().__init__(
            f"Module '{module}' source set '{source_set}': authored and generated "
            f"trees both declare {shown}{more}"
        )


class PublishError(BuildGraphError):
    """Publishing an artifact to one target failed."""

    def __init__(self, target: str, message: str):
        self.target = target
        self.reason = message
        super().__init__(f"{target}: {message}")
