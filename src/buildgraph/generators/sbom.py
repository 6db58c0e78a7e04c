"""CycloneDX SBOM of a build plan.

The root component is the project. Every module is a component depending on
the libraries resolved for it (all configurations) and on the workspace
modules it references. Libraries are identified by ``pkg:maven`` PURLs.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.dependency import Dependency
from cyclonedx.output.json import JsonV1Dot6

from buildgraph.models.coordinates import Coordinate
from buildgraph.models.plan import BuildPlan

SBOM_KEY_ORDER = ("bomFormat", "specVersion", "version", "$schema", "metadata", "dependencies", "components")


def _component(coordinate: Coordinate, version: str, component_type: ComponentType) -> Component:
    purl = coordinate.to_purl(version)
    return Component(
        type=component_type,
        group=coordinate.group,
        name=coordinate.artifact,
        version=version,
        purl=purl,
        bom_ref=purl.to_string(),
    )


def generate_cyclonedx_sbom(plan: BuildPlan, name: str | None = None) -> dict[str, Any]:
    """Generate a CycloneDX 1.6 SBOM for a build plan.

    Args:
        plan: Build plan
        name: Root component name (defaults to the project group)

    Returns:
        Dictionary containing the SBOM data (ordered)
    """
    root = Component(
        type=ComponentType.APPLICATION,
        group=plan.group,
        name=name or plan.group,
        version=plan.version,
        bom_ref=f"{plan.group}:{name or plan.group}@{plan.version}",
    )

    bom = Bom()
    bom.metadata.component = root
    bom.metadata.timestamp = datetime.now(timezone.utc)

    modules: dict[str, Component] = {}
    for module in plan.modules:
        component = _component(
            Coordinate(plan.group, plan.artifact_id(module.name)), plan.version, ComponentType.LIBRARY
        )
        modules[module.name] = component
        bom.components.add(component)

    libraries: dict[Coordinate, Component] = {}
    for coordinate, version in plan.workspace_versions().items():
        libraries[coordinate] = _component(coordinate, version, ComponentType.LIBRARY)
        bom.components.add(libraries[coordinate])

    root_dependency = Dependency(ref=root.bom_ref)
    for component in modules.values():
        root_dependency.dependencies.add(Dependency(ref=component.bom_ref))
    bom.dependencies.add(root_dependency)

    for module in plan.modules:
        dependency = Dependency(ref=modules[module.name].bom_ref)
        for project in module.project_dependencies:
            dependency.dependencies.add(Dependency(ref=modules[project].bom_ref))
        coordinates = {
            selection.coordinate
            for resolution in module.resolutions.values()
            for selection in resolution.selections
        }
        for coordinate in sorted(coordinates):
            dependency.dependencies.add(Dependency(ref=libraries[coordinate].bom_ref))
        bom.dependencies.add(dependency)

    for component in libraries.values():
        bom.dependencies.add(Dependency(ref=component.bom_ref))

    sbom_dict = json.loads(JsonV1Dot6(bom).output_as_string())

    # Reorder to put metadata and dependencies first
    ordered_sbom = {key: sbom_dict[key] for key in SBOM_KEY_ORDER if key in sbom_dict}
    for key, value in sbom_dict.items():
        if key not in ordered_sbom:
            ordered_sbom[key] = value

    return ordered_sbom


def generate_sbom_file(plan: BuildPlan, output_path: Path, name: str | None = None) -> Path:
    """Write the CycloneDX SBOM of a plan as formatted JSON.

    Returns:
        Path to generated file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    sbom = generate_cyclonedx_sbom(plan, name)
    output_path.write_text(json.dumps(sbom, indent=2), encoding="utf-8")
    return output_path
