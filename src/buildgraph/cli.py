"""Command-line interface for buildgraph."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from buildgraph.config import DEFAULT_LOCK_FILE, DEFAULT_PUBLISH_WORKERS
from buildgraph.console import console, error, styled_status, success, warning
from buildgraph.errors import BuildGraphError
from buildgraph.logging import get_logger, setup_logging
from buildgraph.models.manifest import TargetConfig
from buildgraph.models.plan import BuildPlan
from buildgraph.models.publication import PublishResult
from buildgraph.utils import parse_comma_list
from buildgraph.workspace import Workspace, load_workspace

logger = get_logger(__name__)

app = typer.Typer(
    name="buildgraph",
    help="Compose multi-module builds into reproducible plans and publish their artifacts.",
    no_args_is_help=True,
    add_completion=False,
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

WorkspaceOption = Annotated[
    Path,
    typer.Option("--workspace", "-w", help="Workspace root containing buildgraph.toml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug output")]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Only show warnings and errors")]
LogLevelOption = Annotated[
    str | None,
    typer.Option("--log-level", help=f"Explicit log level ({', '.join(LOG_LEVELS)})"),
]


def _configure_logging(verbose: bool, quiet: bool, log_level: str | None) -> None:
    """Validate the logging flags and set up logging.

    Raises:
        typer.Exit: If more than one flag is given or the level is unknown
    """
    if sum([verbose, quiet, log_level is not None]) > 1:
        error("Error: --verbose, --quiet, and --log-level are mutually exclusive")
        raise typer.Exit(code=1)
    if log_level is not None and log_level.upper() not in LOG_LEVELS:
        error(f"Error: unknown log level '{log_level}'")
        raise typer.Exit(code=1)
    setup_logging(verbose=verbose, quiet=quiet, log_level=log_level)


def _parse_comma_list(value: str | None) -> list[str] | None:
    """Parse a comma-separated option value."""
    return parse_comma_list(value)


def _load_and_build(workspace: Path, modules: list[str] | None) -> tuple[Workspace, BuildPlan]:
    """Load the workspace and build its plan, exiting with 1 on any error."""
    try:
        ws = load_workspace(workspace)
        plan = ws.build(modules)
    except BuildGraphError as e:
        error(f"Build failed: {e}")
        raise typer.Exit(code=1) from e
    return ws, plan


def _validate_target_selection(
    requested: list[str] | None, configured: list[TargetConfig]
) -> list[TargetConfig]:
    """Pick the requested targets (all when none are requested).

    Raises:
        typer.Exit: If a requested target is not configured
    """
    if requested is None:
        return list(configured)

    by_name = {t.name: t for t in configured}
    unknown = [name for name in requested if name not in by_name]
    if unknown:
        error(f"Unknown target(s): {', '.join(unknown)}")
        console.print(f"Configured targets: {', '.join(by_name) or 'none'}")
        raise typer.Exit(code=1)
    return [by_name[name] for name in requested]


def _validate_publishable(requested: list[str] | None, publishable: tuple[str, ...]) -> list[str]:
    """Pick the requested publishable modules (all when none are requested).

    Raises:
        typer.Exit: If a requested module is not publishable
    """
    if requested is None:
        return list(publishable)

    not_publishable = [name for name in requested if name not in publishable]
    if not_publishable:
        error(f"Not publishable: {', '.join(not_publishable)}")
        console.print(f"Publishable modules: {', '.join(publishable) or 'none'}")
        raise typer.Exit(code=1)
    return list(requested)


def _print_plan(plan: BuildPlan) -> None:
    table = Table(title=f"Build plan: {plan.group} {plan.version}")
    table.add_column("#", justify="right")
    table.add_column("Module", style="bold")
    table.add_column("Plugins")
    table.add_column("Depends on")
    table.add_column("Configurations")

    for index, module in enumerate(plan.modules, start=1):
        configurations = ", ".join(
            f"{name} ({len(resolution.selections)})" for name, resolution in sorted(module.resolutions.items())
        )
        table.add_row(
            str(index),
            module.name,
            ", ".join(module.plugins) or "-",
            ", ".join(module.project_dependencies) or "-",
            configurations or "-",
        )

    console.print(table)


def _print_results(results: list[PublishResult]) -> None:
    table = Table(title="Publication results")
    table.add_column("Module", style="bold")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Details")

    for result in results:
        details = result.error_message or result.location or ""
        table.add_row(result.module, result.target, styled_status(result.status.value), details)

    console.print(table)


@app.command()
def build(
    workspace: WorkspaceOption = Path("."),
    modules: Annotated[
        str | None, typer.Option("--modules", "-m", help="Comma-separated modules to build")
    ] = None,
    lock_file: Annotated[
        Path | None, typer.Option("--lock-file", help=f"Lock output (default: <workspace>/{DEFAULT_LOCK_FILE})")
    ] = None,
    sbom: Annotated[Path | None, typer.Option("--sbom", help="Also write a CycloneDX SBOM")] = None,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """Resolve the build plan and write the dependency lock."""
    _configure_logging(verbose, quiet, log_level)

    from buildgraph.generators import generate_lock_file, generate_sbom_file

    ws, plan = _load_and_build(workspace, _parse_comma_list(modules))
    _print_plan(plan)

    lock_path = generate_lock_file(plan, lock_file or ws.root / DEFAULT_LOCK_FILE)
    success(f"Wrote {lock_path}")

    if sbom is not None:
        sbom_path = generate_sbom_file(plan, sbom)
        success(f"Wrote {sbom_path}")


@app.command()
def publish(
    workspace: WorkspaceOption = Path("."),
    targets: Annotated[
        str | None, typer.Option("--targets", "-t", help="Comma-separated targets (default: all)")
    ] = None,
    modules: Annotated[
        str | None, typer.Option("--modules", "-m", help="Comma-separated modules (default: all publishable)")
    ] = None,
    allow_overwrite: Annotated[
        bool, typer.Option("--allow-overwrite", help="Replace versions that are already published")
    ] = False,
    workers: Annotated[
        int, typer.Option("--workers", min=1, help="Targets published in parallel")
    ] = DEFAULT_PUBLISH_WORKERS,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """Build the plan, then publish module artifacts to every target."""
    _configure_logging(verbose, quiet, log_level)

    from buildgraph.publishing.planner import PublicationPlanner, collect_artifacts

    ws, plan = _load_and_build(workspace, None)

    selected_targets = _validate_target_selection(_parse_comma_list(targets), list(ws.manifest.targets))
    if not selected_targets:
        error("No publishing targets configured")
        raise typer.Exit(code=1)

    selected_modules = _validate_publishable(_parse_comma_list(modules), ws.manifest.publish_modules)
    if not selected_modules:
        error("No publishable modules configured")
        raise typer.Exit(code=1)

    planner = PublicationPlanner(env=ws.env, max_workers=workers, allow_overwrite=allow_overwrite)
    try:
        artifacts = collect_artifacts(plan, selected_modules)
        summary = planner.publish(artifacts, selected_targets)
    except BuildGraphError as e:
        error(f"Publish failed: {e}")
        raise typer.Exit(code=1) from e

    _print_results(summary.results)
    summary.print_summary()

    if not summary.ok:
        raise typer.Exit(code=1)


@app.command(name="list-plugins")
def list_plugins(
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """List available build plugins and publishers."""
    _configure_logging(verbose, quiet, log_level)

    from buildgraph.graph import get_registered_build_plugins
    from buildgraph.publishing import get_registered_publishers

    build_plugins = get_registered_build_plugins()
    if not build_plugins:
        error("No build plugins registered.")
        console.print("Plugins may not be installed correctly.")
        raise typer.Exit(code=1)

    table = Table(title="Build plugins")
    table.add_column("Plugin", style="bold")
    table.add_column("Description")
    table.add_column("Requires")
    for name, info in sorted(build_plugins.items()):
        table.add_row(name, info.description or "", ", ".join(info.requires) or "-")
    console.print(table)

    publishers = get_registered_publishers()
    table = Table(title="Publishers")
    table.add_column("Publisher", style="bold")
    table.add_column("Schemes")
    table.add_column("Description")
    for name, info in sorted(publishers.items()):
        table.add_row(name, ", ".join(info.schemes), info.description or "")
    console.print(table)


@app.command(name="list-targets")
def list_targets(
    workspace: WorkspaceOption = Path("."),
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """List publishing targets and whether their credentials are set."""
    _configure_logging(verbose, quiet, log_level)

    from buildgraph.env import resolve_credentials
    from buildgraph.publishing import publisher_for_scheme

    try:
        ws = load_workspace(workspace)
    except BuildGraphError as e:
        error(str(e))
        raise typer.Exit(code=1) from e

    if not ws.manifest.targets:
        warning("No publishing targets configured.")
        return

    table = Table(title="Publishing targets")
    table.add_column("Target", style="bold")
    table.add_column("URL")
    table.add_column("Publisher")
    table.add_column("Credentials")

    for target in ws.manifest.targets:
        scheme, sep, _ = target.url.partition("://")
        publisher = publisher_for_scheme(scheme.lower() if sep else "file")
        if not target.credentials:
            credentials = "-"
        elif resolve_credentials(target.credentials, ws.env) is None:
            credentials = f"[red]{target.credentials} (missing)[/red]"
        else:
            credentials = f"[green]{target.credentials}[/green]"
        table.add_row(
            target.name,
            target.url,
            publisher.name if publisher else "[red]none[/red]",
            credentials,
        )

    console.print(table)
    console.print(f"Publishable modules: {', '.join(ws.manifest.publish_modules) or 'none'}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
