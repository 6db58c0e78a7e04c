"""Source directory layout and overlap detection.

Generated directories are appended to a source set's path after the authored
ones. A file may live in either tree but not both: ``io/spine/X.java`` under
``src/main/java`` and under ``generated/main/java`` is an overlap.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Any

from buildgraph.errors import SourceOverlapError
from buildgraph.logging import get_logger
from buildgraph.models.manifest import SourceSet

logger = get_logger(__name__)


def source_fragment(
    module: dict[str, Any],
    authored: Iterable[str] = (),
    generated: Iterable[str] = (),
    resources: bool = False,
) -> dict[str, Any]:
    """Build a ``sources`` fragment covering every source set of a module.

    ``authored=["java"]`` adds ``src/<set>/java``; ``generated=["grpc"]``
    adds ``generated/<set>/grpc``; ``resources=True`` adds
    ``src/<set>/resources``.

    Args:
        module: Module as dict (must contain ``sources``)
        authored: Language directory names under ``src/<set>``
        generated: Directory names under ``generated/<set>``
        resources: Include the resources directory

    Returns:
        Fragment dict suitable as a plugin's return value
    """
    authored = list(authored)
    generated = list(generated)
    sources = {}
    for set_name in module.get("sources", {}):
        sources[set_name] = {
            "authored": [f"src/{set_name}/{lang}" for lang in authored],
            "generated": [f"generated/{set_name}/{name}" for name in generated],
            "resources": [f"src/{set_name}/resources"] if resources else [],
        }
    return {"sources": sources}


def scan_files(root: Path) -> set[str]:
    """Relative POSIX paths of all files under ``root`` (empty if missing)."""
    if not root.is_dir():
        return set()
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


def _tree_files(directory: Path, roots: Iterable[PurePosixPath]) -> set[str]:
    files: set[str] = set()
    for root in roots:
        files |= scan_files(directory / root)
    return files


def find_overlaps(directory: Path, source_set: SourceSet) -> list[str]:
    """Logical files declared by both the authored and the generated trees."""
    authored = _tree_files(directory, source_set.authored)
    generated = _tree_files(directory, source_set.generated)
    return sorted(authored & generated)


def check_source_sets(module: str, directory: Path, source_sets: dict[str, SourceSet]) -> None:
    """Verify that no source set of a module has overlapping trees.

    Raises:
        SourceOverlapError: For the first source set (by name) with overlaps
    """
    for name in sorted(source_sets):
        overlaps = find_overlaps(directory, source_sets[name])
        if overlaps:
            raise SourceOverlapError(module, name, overlaps)
        logger.debug(f"{module}/{name}: source path {[str(p) for p in source_sets[name].source_path]}")
