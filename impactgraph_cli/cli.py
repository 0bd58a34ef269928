"""Typer-based CLI for ImpactGraph dependency and test-impact analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import toml
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config_manager
from .classifier import UnitClassifier
from .extractor import RegexDependencyExtractor
from .graph import dangling_targets
from .graph_export import export_dot, export_json, to_dot, to_json
from .lookup import DependencyLookupError, ToolingApiDependencyLookup
from .manifest import ManifestError, read_manifest
from .models import ImpactReport, UnitKind
from .pipeline import ImpactPipeline
from .registry import UnitRegistry

console = Console()

app = typer.Typer(
    help="🧭 ImpactGraph CLI: dependency graphs and test selection for Apex deployments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="⚙️  Configuration: show and edit settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

SOURCE_OPTION = typer.Option(
    ..., "--source", "-s", exists=True, file_okay=False, help="Directory holding the Apex classes.",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ImpactGraph CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log progress to stderr."),
):
    """ImpactGraph CLI: which units ship with a change, and which tests must run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _build_pipeline(source: Path, settings: config_manager.Settings, tooling: bool = False) -> ImpactPipeline:
    classifier = UnitClassifier(
        suffixes=settings.suffixes,
        prefixes=settings.prefixes,
        markers=settings.markers,
        marker_window=settings.marker_window,
    )
    registry = UnitRegistry.from_directory(source, classifier=classifier)
    if not len(registry):
        raise typer.BadParameter(f"No Apex classes found under '{source}'.")
    extractor = RegexDependencyExtractor(
        blocklist=settings.blocklist, case_insensitive=settings.case_insensitive,
    )
    return ImpactPipeline(
        registry,
        extractor=extractor,
        lookup=_tooling_lookup(settings, registry) if tooling else None,
        max_depth=settings.max_depth,
        max_workers=settings.workers,
    )


def _collect_seeds(seeds: Optional[List[str]], manifest: Optional[Path]) -> List[str]:
    collected = list(seeds or [])
    if manifest is not None:
        try:
            collected.extend(read_manifest(manifest).apex_classes)
        except ManifestError as exc:
            raise typer.BadParameter(str(exc))
    if not collected:
        raise typer.BadParameter("Give at least one changed class or a --manifest with ApexClass members.")
    return sorted(set(collected))


def _require_tooling_credentials(settings: config_manager.Settings) -> None:
    if not settings.instance_url or not settings.access_token:
        raise typer.BadParameter(
            "Tooling API lookups need [salesforce] instance_url in the config "
            "and an access token in $SF_ACCESS_TOKEN."
        )


def _tooling_lookup(settings: config_manager.Settings, registry: UnitRegistry) -> ToolingApiDependencyLookup:
    _require_tooling_credentials(settings)
    return ToolingApiDependencyLookup(
        settings.instance_url,
        settings.access_token,
        metadata_ids=registry.metadata_ids(),
        api_version=settings.api_version,
        chunk_size=settings.chunk_size,
    )


def _print_report(report: ImpactReport, as_json: bool, tests_only: bool = False) -> None:
    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return

    typer.echo(f"Changed: {', '.join(report.seeds)}")
    if report.depth is not None:
        typer.echo(f"Depth: {report.depth}")
    if not tests_only:
        typer.echo(f"Impacted units ({len(report.impacted)}):")
        for name in report.impacted:
            typer.echo(f"- {name}")
    if report.tests:
        typer.echo(f"Tests to run ({len(report.tests)}):")
        for name in report.tests:
            typer.echo(f"- {name}")
    else:
        typer.echo("Tests to run: none found")


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("scan")
def scan(
    source: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory holding the Apex classes."),
):
    """Build the dependency graph and print summary counts."""
    settings = config_manager.load_settings()
    pipeline = _build_pipeline(source, settings)
    forward = pipeline.forward_graph
    edges = sum(len(targets) for targets in forward.values())

    typer.echo(f"Scanned '{source}'.")
    typer.echo(f"Units: {len(pipeline.registry)} | Edges: {edges} | Tests: {len(pipeline.registry.test_units())}")
    typer.echo(f"External references: {len(dangling_targets(forward))}")


@app.command("impact")
def impact(
    seeds: Optional[List[str]] = typer.Argument(None, help="Changed class names."),
    source: Path = SOURCE_OPTION,
    manifest: Optional[Path] = typer.Option(None, "--manifest", "-m", exists=True, dir_okay=False, help="package.xml to take ApexClass members from."),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=0, max=6, help="Dependency hops to follow."),
    tooling: bool = typer.Option(False, "--tooling", help="Ask the org's Tooling API instead of local sources."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
):
    """List the units a change set depends on, up to a bounded depth."""
    settings = config_manager.load_settings({"max_depth": depth})
    changed = _collect_seeds(seeds, manifest)
    if tooling:
        _require_tooling_credentials(settings)
    pipeline = _build_pipeline(source, settings, tooling=tooling)

    try:
        report = pipeline.report_change_impact(changed)
    except DependencyLookupError as exc:
        typer.echo(f"❌ Dependency lookup failed: {exc}", err=True)
        raise typer.Exit(code=1)
    _print_report(report, as_json)


@app.command("tests")
def tests(
    seeds: Optional[List[str]] = typer.Argument(None, help="Changed class names."),
    source: Path = SOURCE_OPTION,
    manifest: Optional[Path] = typer.Option(None, "--manifest", "-m", exists=True, dir_okay=False, help="package.xml to take ApexClass members from."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    names_only: bool = typer.Option(False, "--names-only", help="Print test names comma-separated, for deploy commands."),
):
    """List every test class that transitively exercises the changed classes."""
    settings = config_manager.load_settings()
    changed = _collect_seeds(seeds, manifest)
    pipeline = _build_pipeline(source, settings)
    report = pipeline.report_affected_tests(changed)

    if names_only:
        typer.echo(",".join(report.tests))
        return
    _print_report(report, as_json, tests_only=True)


@app.command("classify")
def classify(
    source: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory holding the Apex classes."),
    tests_only: bool = typer.Option(False, "--tests-only", help="Only list test classes."),
):
    """Show how every unit is classified."""
    settings = config_manager.load_settings()
    pipeline = _build_pipeline(source, settings)

    table = Table(title="Unit classification", show_header=True)
    table.add_column("Unit", style="cyan")
    table.add_column("Kind")
    for name in sorted(pipeline.registry.names()):
        kind = pipeline.registry.kind_of(name)
        if tests_only and kind is not UnitKind.TEST:
            continue
        table.add_row(name, kind.value)
    console.print(table)


@app.command("graph")
def graph(
    symbol: str = typer.Argument(..., help="Class to inspect."),
    source: Path = SOURCE_OPTION,
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Show dependents instead of dependencies."),
):
    """Show the direct neighbours of a class."""
    settings = config_manager.load_settings()
    pipeline = _build_pipeline(source, settings)
    adjacency = pipeline.reverse_graph if reverse else pipeline.forward_graph

    if symbol not in pipeline.registry:
        typer.echo(f"⚠️  '{symbol}' is not in the scanned sources.", err=True)
    arrow = "<-" if reverse else "->"
    typer.echo(symbol)
    neighbours = sorted(adjacency.get(symbol, ()))
    if not neighbours:
        typer.echo("  (none)")
    for name in neighbours:
        marker = " [test]" if pipeline.is_test(name) else ""
        typer.echo(f"  |{arrow} {name}{marker}")


@app.command("export-graph")
def export_graph(
    source: Path = SOURCE_OPTION,
    focus: str = typer.Option("", "--focus", help="Only export this class and its neighbours."),
    fmt: str = typer.Option("dot", "--format", "-f", help="Export format: dot or json."),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Export the reverse graph."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Export the dependency graph to Graphviz DOT or JSON."""
    fmt = fmt.lower()
    if fmt not in {"dot", "json"}:
        raise typer.BadParameter("Format must be one of: dot, json")

    settings = config_manager.load_settings()
    pipeline = _build_pipeline(source, settings)
    adjacency = pipeline.reverse_graph if reverse else pipeline.forward_graph

    if output is None:
        if fmt == "dot":
            typer.echo(to_dot(adjacency, focus=focus, is_test=pipeline.is_test))
        else:
            typer.echo(to_json(adjacency, focus=focus))
        return

    if fmt == "dot":
        export_dot(adjacency, output, focus=focus, is_test=pipeline.is_test)
    else:
        export_json(adjacency, output, focus=focus)
    typer.echo(f"Exported graph to {output}")


# ------------------------------------------------------------------
# Config
# ------------------------------------------------------------------

@config_app.command("show")
def config_show():
    """Print the config file and the effective settings."""
    full = config_manager.load_full_config()
    typer.echo(f"# {config_manager.CONFIG_FILE}")
    typer.echo(toml.dumps(full) if full else "# (no config file)")

    settings = config_manager.load_settings()
    typer.echo("# effective")
    typer.echo(f"max_depth = {settings.max_depth}")
    typer.echo(f"workers = {settings.workers}")
    typer.echo(f"test suffixes = {', '.join(settings.suffixes)}")
    typer.echo(f"test prefixes = {', '.join(settings.prefixes)}")
    typer.echo(f"test markers = {', '.join(settings.markers)}")
    typer.echo(f"instance_url = {settings.instance_url or '(unset)'}")
    typer.echo(f"access token = {'set' if settings.access_token else '(unset)'}")


@config_app.command("set")
def config_set(
    section: str = typer.Argument(..., help="Section: analysis, classifier, extractor or salesforce."),
    key: str = typer.Argument(..., help="Setting name."),
    value: str = typer.Argument(..., help="Value; comma-separated for lists."),
):
    """Store one setting in the config file."""
    coerced = config_manager.coerce_value(value)
    try:
        config_manager.validate_value(section, key, coerced)
        config_manager.save_section(section, {key: coerced})
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0]))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Saved [{section}] {key}")


if __name__ == "__main__":
    app()
