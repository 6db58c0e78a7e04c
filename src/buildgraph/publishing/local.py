"""Bundled file publisher.

Writes artifacts into a Maven-layout directory, addressed either as a
``file://`` URL or as a plain path. A ``<name>.sha256`` checksum is written
next to every artifact.
"""

import os
import tempfile
from pathlib import Path
from urllib.parse import unquote, urlparse

from buildgraph import hookimpl
from buildgraph.errors import PublishError
from buildgraph.logging import get_logger

logger = get_logger(__name__)

SCHEMES = ["file"]


def location_to_path(location: str) -> Path:
    """``file:///repo/a.jar`` and ``/repo/a.jar`` both name ``/repo/a.jar``."""
    if location.startswith("file://"):
        return Path(unquote(urlparse(location).path))
    return Path(location)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


@hookimpl
def register_publishers() -> dict:
    """Register the file publisher."""
    return {
        "name": "file",
        "schemes": SCHEMES,
        "description": "Local directory repository",
    }


@hookimpl
def publish_artifact(scheme, target, location, payload, digest, allow_overwrite) -> dict | None:
    """Copy artifact bytes into a local repository."""
    if scheme not in SCHEMES:
        return None

    path = location_to_path(location)
    if path.exists() and not allow_overwrite:
        raise PublishError(target, f"{path.name} is already published at {path.parent}")

    try:
        _write_atomic(path, payload)
        _write_atomic(path.with_name(f"{path.name}.sha256"), f"{digest}\n".encode())
    except OSError as e:
        raise PublishError(target, f"Cannot write {path}: {e}") from e

    logger.debug(f"[{target}] wrote {len(payload)} bytes to {path}")
    return {"status": "success", "location": str(path)}
