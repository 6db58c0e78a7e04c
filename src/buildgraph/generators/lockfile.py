"""TOML dependency lock for a build plan.

The lock lists the resolved version of every coordinate per module and
configuration, the single version each coordinate has across the workspace,
and the plugin transformations that shaped the modules::

    [metadata]
    group = "io.spine.tools"
    version = "2.0.0"
    order = ["model-assembler", "model-check"]

    [modules.model-check.implementation]
    "io.grpc:grpc-core" = "1.47.0"

    [workspace]
    "io.grpc:grpc-core" = "1.47.0"

    [[steps]]
    order = 1
    module = "model-check"
    plugin = "java"
    changes = {sources = {main = {authored = ["src/main/java"]}}}

Rendering is deterministic: the same plan always gives the same bytes.
"""

from pathlib import Path

import tomlkit

from buildgraph.config import __version__
from buildgraph.models.plan import BuildPlan


def render_lock(plan: BuildPlan) -> str:
    """Render the lock file content for a plan.

    Args:
        plan: Build plan

    Returns:
        TOML document as a string
    """
    doc = tomlkit.document()
    doc.add(tomlkit.comment(f"Generated by buildgraph {__version__}. Do not edit."))

    metadata = tomlkit.table()
    metadata["group"] = plan.group
    metadata["version"] = plan.version
    metadata["order"] = list(plan.order)
    doc["metadata"] = metadata

    modules = tomlkit.table(is_super_table=True)
    for module in plan.modules:
        module_table = tomlkit.table()
        for configuration in sorted(module.resolutions):
            versions = tomlkit.table()
            for coordinate, version in module.resolutions[configuration].versions.items():
                versions[str(coordinate)] = version
            module_table[configuration] = versions
        modules[module.name] = module_table
    doc["modules"] = modules

    workspace = tomlkit.table()
    for coordinate, version in plan.workspace_versions().items():
        workspace[str(coordinate)] = version
    doc["workspace"] = workspace

    if plan.steps:
        steps = tomlkit.aot()
        for step in plan.steps:
            entry = step.to_dict()
            changes = tomlkit.inline_table()
            changes.update(entry.pop("changes"))
            step_table = tomlkit.table()
            step_table.update(entry)
            step_table["changes"] = changes
            steps.append(step_table)
        doc["steps"] = steps

    return tomlkit.dumps(doc)


def generate_lock_file(plan: BuildPlan, output_path: Path) -> Path:
    """Write the lock file for a plan.

    Args:
        plan: Build plan
        output_path: Where to write the lock

    Returns:
        Path to generated file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_lock(plan), encoding="utf-8")
    return output_path
