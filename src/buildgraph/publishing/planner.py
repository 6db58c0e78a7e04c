"""Publication planner: fans one artifact out to many repositories.

Each artifact is read once; every target receives the same bytes and every
operation records the same SHA-256 digest. Targets are published in parallel
and independently: a failing target is reported in its result and never
stops or rolls back the others.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from buildgraph.config import BUILD_DIR, DEFAULT_PUBLISH_WORKERS, PUBLISH_TIMEOUT_SECONDS
from buildgraph.env import resolve_credentials
from buildgraph.errors import BuildGraphError, PublishError
from buildgraph.logging import get_logger
from buildgraph.models.manifest import TargetConfig
from buildgraph.models.plan import BuildPlan
from buildgraph.models.publication import (
    Artifact,
    PublicationSummary,
    PublishOperation,
    PublishResult,
    PublishStatus,
)
from buildgraph.publishing import publish_artifact

logger = get_logger(__name__)


def default_artifact_path(module: str) -> Path:
    """Where a module's artifact is expected when the manifest names none."""
    return Path(BUILD_DIR) / "libs" / f"{module}.jar"


def collect_artifacts(plan: BuildPlan, publishable: Iterable[str]) -> list[Artifact]:
    """Artifacts of the publishable modules, in build order.

    Args:
        plan: Build plan
        publishable: Names of modules that are published

    Raises:
        BuildGraphError: If a publishable module is not in the plan
    """
    names = set(publishable)
    unknown = sorted(names - set(plan.order))
    if unknown:
        raise BuildGraphError(f"Publishable modules not in the build: {', '.join(unknown)}")

    artifacts = []
    for module in plan.modules:
        if module.name not in names:
            continue
        path = module.artifact_path or module.directory / default_artifact_path(module.name)
        artifacts.append(
            Artifact(
                module=module.name,
                path=path,
                group=plan.group,
                artifact_id=plan.artifact_id(module.name),
                version=plan.version,
                extension=path.suffix.lstrip(".") or "jar",
            )
        )
    return artifacts


class PublicationPlanner:
    """Plans and executes publish operations."""

    def __init__(
        self,
        env: dict[str, str] | None = None,
        max_workers: int = DEFAULT_PUBLISH_WORKERS,
        allow_overwrite: bool = False,
        timeout: int = PUBLISH_TIMEOUT_SECONDS,
    ):
        """Initialize the planner.

        Args:
            env: Environment used to resolve target credentials
            max_workers: Maximum number of targets published at once
            allow_overwrite: Replace versions that are already published
            timeout: Per-upload timeout in seconds
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.env = env or {}
        self.max_workers = max_workers
        self.allow_overwrite = allow_overwrite
        self.timeout = timeout

    def plan(self, artifact: Artifact, targets: Iterable[TargetConfig]) -> tuple[PublishOperation, ...]:
        """One operation per distinct target, all sharing a single read of the artifact.

        Raises:
            BuildGraphError: If the artifact file cannot be read
        """
        try:
            payload = artifact.path.read_bytes()
        except OSError as e:
            raise BuildGraphError(
                f"Cannot read artifact of module '{artifact.module}' at {artifact.path}: {e}"
            ) from e
        digest = hashlib.sha256(payload).hexdigest()

        operations: dict[str, PublishOperation] = {}
        for target in targets:
            if target.name not in operations:
                operations[target.name] = PublishOperation(artifact, target, digest, payload)

        logger.debug(
            f"Planned {len(operations)} publication(s) of {artifact.file_name()} "
            f"({len(payload)} bytes, sha256 {digest[:12]})"
        )
        return tuple(operations.values())

    def execute(self, operations: Iterable[PublishOperation]) -> list[PublishResult]:
        """Publish all operations in parallel.

        Returns:
            One result per operation, in the order given
        """
        operations = list(operations)
        if not operations:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(operations))) as executor:
            futures = [executor.submit(self._publish_one, op) for op in operations]
            return [future.result() for future in futures]

    def publish(
        self, artifacts: Iterable[Artifact], targets: Iterable[TargetConfig]
    ) -> PublicationSummary:
        """Plan every artifact for every target and execute all operations."""
        targets = list(targets)
        operations: list[PublishOperation] = []
        for artifact in artifacts:
            operations.extend(self.plan(artifact, targets))

        summary = PublicationSummary()
        for result in self.execute(operations):
            summary.add_result(result)
        return summary

    def _publish_one(self, operation: PublishOperation) -> PublishResult:
        target = operation.target
        start_time = time.time()

        try:
            credentials = resolve_credentials(target.credentials, self.env)
            if target.credentials and credentials is None:
                logger.warning(f"[{target.name}] no credentials found for '{target.credentials}'")

            result = publish_artifact(
                scheme=operation.scheme,
                target=target.name,
                location=operation.location,
                payload=operation.payload,
                digest=operation.digest,
                credentials=credentials,
                allow_overwrite=self.allow_overwrite,
                timeout=self.timeout,
            )
        except PublishError as e:
            logger.error(f"[{target.name}] {operation.artifact.module}: {e.reason}")
            return PublishResult(
                target=target.name,
                module=operation.artifact.module,
                status=PublishStatus.FAILED,
                digest=operation.digest,
                location=operation.location,
                error_message=e.reason,
                duration_seconds=time.time() - start_time,
            )
        except Exception as e:
            logger.error(f"[{target.name}] unexpected error: {e}")
            return PublishResult(
                target=target.name,
                module=operation.artifact.module,
                status=PublishStatus.FAILED,
                digest=operation.digest,
                location=operation.location,
                error_message=str(e),
                duration_seconds=time.time() - start_time,
            )

        status = PublishStatus(result.get("status", "success"))
        logger.info(f"[{target.name}] {operation.artifact.module}: {status.value}")
        return PublishResult(
            target=target.name,
            module=operation.artifact.module,
            status=status,
            digest=operation.digest,
            location=result.get("location", operation.location),
            error_message=result.get("message"),
            duration_seconds=time.time() - start_time,
        )
