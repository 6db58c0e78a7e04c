"""Writers for build plan outputs: dependency lock and SBOM."""

from buildgraph.generators.lockfile import generate_lock_file, render_lock
from buildgraph.generators.sbom import generate_cyclonedx_sbom, generate_sbom_file

__all__ = ["generate_lock_file", "render_lock", "generate_cyclonedx_sbom", "generate_sbom_file"]
