"""Publication models: artifacts, publish operations and their results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.panel import Panel
from rich.text import Text

from buildgraph.config import DEFAULT_ARTIFACT_EXTENSION
from buildgraph.console import console
from buildgraph.models.coordinates import Coordinate
from buildgraph.models.manifest import TargetConfig


@dataclass(frozen=True)
class Artifact:
    """A built file to publish for one module."""

    module: str
    """Module that produced the artifact"""

    path: Path
    """Built file on disk"""

    group: str
    artifact_id: str
    """Published artifact id (artifact prefix + module name)"""

    version: str

    classifier: str = ""
    extension: str = DEFAULT_ARTIFACT_EXTENSION

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.group, self.artifact_id)

    def file_name(self, classifier: str | None = None) -> str:
        """Repository file name, e.g. ``spine-model-check-2.0.0.jar``."""
        classifier = self.classifier if classifier is None else classifier
        suffix = f"-{classifier}" if classifier else ""
        return f"{self.artifact_id}-{self.version}{suffix}.{self.extension}"

    def repository_path(self, classifier: str | None = None) -> str:
        """Maven repository layout path relative to the repository root."""
        group_path = self.group.replace(".", "/")
        return f"{group_path}/{self.artifact_id}/{self.version}/{self.file_name(classifier)}"


class PublishStatus(Enum):
    """Outcome of publishing to one target."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PublishOperation:
    """Publishing one artifact to one target.

    Every operation planned for the same artifact carries the same digest,
    computed from a single read of the artifact bytes.
    """

    artifact: Artifact
    target: TargetConfig
    digest: str
    """SHA-256 hex digest of the artifact bytes"""

    payload: bytes = field(default=b"", repr=False, compare=False)
    """Artifact bytes, shared by all operations of the artifact"""

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def classifier(self) -> str:
        return self.target.classifier or self.artifact.classifier

    @property
    def remote_path(self) -> str:
        return self.artifact.repository_path(self.classifier)

    @property
    def location(self) -> str:
        return f"{self.target.url}/{self.remote_path}"

    @property
    def scheme(self) -> str:
        scheme, sep, _ = self.target.url.partition("://")
        return scheme.lower() if sep else "file"


@dataclass
class PublishResult:
    """Result of one publish operation."""

    target: str
    """Target name"""

    module: str
    status: PublishStatus

    digest: str | None = None
    """SHA-256 of the bytes sent"""

    location: str | None = None
    """Where the artifact was (or would have been) written"""

    error_message: str | None = None

    duration_seconds: float = 0.0


@dataclass
class PublicationSummary:
    """Summary of a publish run across modules and targets."""

    results: list[PublishResult] = field(default_factory=list)

    def add_result(self, result: PublishResult) -> None:
        self.results.append(result)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == PublishStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == PublishStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == PublishStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        """True when no target failed."""
        return self.failed == 0

    def failures(self) -> list[PublishResult]:
        return [r for r in self.results if r.status == PublishStatus.FAILED]

    def print_summary(self) -> None:
        """Print a formatted summary using Rich panel."""
        content = Text()
        content.append(f"  ✓ Published: {self.succeeded}\n", style="green")
        if self.skipped > 0:
            content.append(f"  ○ Skipped:   {self.skipped}\n", style="yellow")
        if self.failed > 0:
            content.append(f"  ✗ Failed:    {self.failed}\n", style="red")
            for result in self.failures():
                content.append(f"\n  {result.module} → {result.target}: ", style="bold")
                content.append(result.error_message or "unknown error")

        console.print(Panel(content, title="Publication Summary", expand=False))
