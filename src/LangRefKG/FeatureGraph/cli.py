"""
Typer CLI for building, validating, and querying feature reference graphs.

Commands share one settings object built in the root callback with the
precedence CLI > ENV (``LANGREFKG_*``) > ``--config`` file > defaults.
Diagnostics are printed to stderr grouped by severity; stdout carries only a
command's product (the resolved id list, a summary line) so it can be piped.

Exit codes: ``0`` no errors, ``1`` errors were found, ``2`` fatal input error.

NAVMAP:
- CLI_ROOT: Root Typer app with global callback
- COMMANDS: extract, validate, resolve, diff, check-examples
- CONFIG: config show
- HELPERS: Report emission, fatal error handling
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from importlib import metadata
from pathlib import Path
from typing import Annotated, Any, Dict, List, NoReturn, Optional

import typer
import yaml
from pydantic import ValidationError

from .backends import CompilerBackend
from .builder import FeatureGraph, build_graph
from .cancellation import CancellationToken
from .cli_errors import CLIValidationError, format_cli_error
from .config_loaders import ConfigLoadError
from .errors import CyclicRequirementError, GraphFormatError, VersionParseError
from .example_validator import ExampleStatus, validate_examples
from .extractor import ExtractionAccumulator, ExtractorConfig, extract_documents
from .io import discover_documents, load_documents, load_graph, save_graph
from .logging import configure_logging
from .reference_validator import validate_references
from .report import DiagnosticReport
from .resolver import VersionResolver
from .settings import ExtractionPolicy, FeatureGraphSettings, LogFormat, LogLevel, build_settings
from .versions import Family, parse_family

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_FATAL = 2

# ============================================================================
# CLI Application Setup
# ============================================================================

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
    help="[bold]LangRefKG[/bold]: build and query C/C++ feature reference graphs.",
)

config_app = typer.Typer(no_args_is_help=True, rich_markup_mode="rich")
app.add_typer(config_app, name="config", help="Introspect the effective configuration")


class ReportFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


class DumpFormat(str, Enum):
    YAML = "yaml"
    JSON = "json"


@dataclass
class CLIState:
    """Per-invocation context stored on ``ctx.obj``."""

    settings: FeatureGraphSettings
    config_file: Optional[Path] = None


def _package_version() -> str:
    try:
        return metadata.version("langrefkg")
    except metadata.PackageNotFoundError:
        return "0+unknown"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"langrefkg {_package_version()}")
        raise typer.Exit()


# ============================================================================
# Root Callback (Global Options)
# ============================================================================


@app.callback()
def root_callback(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help="Settings file (JSON, YAML or TOML)", dir_okay=False),
    ] = None,
    log_level: Annotated[
        Optional[LogLevel],
        typer.Option("--log-level", case_sensitive=False, help="Logging level"),
    ] = None,
    log_format: Annotated[
        Optional[LogFormat],
        typer.Option("--log-format", case_sensitive=False, help="Logging format (console|json)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the installed version and exit",
        ),
    ] = False,
) -> None:
    """
    [bold]Feature Reference Graph Engine[/bold]

    [bold yellow]Precedence:[/bold yellow] CLI args > ENV vars (LANGREFKG_*) > --config file > defaults

    [bold yellow]Examples:[/bold yellow]

    [cyan]langrefkg extract --in docs/ --out graph.json[/cyan]

    [cyan]langrefkg resolve --graph graph.json --family cpp --version 17[/cyan]
    """
    try:
        settings = build_settings(
            config_file=config,
            cli_overrides={"log_level": log_level, "log_format": log_format},
        )
    except (ConfigLoadError, ValidationError) as exc:
        typer.secho(f"✗ Configuration error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FATAL)
    configure_logging(settings.log_level.value, settings.log_format.value)
    ctx.obj = CLIState(settings=settings, config_file=config)


# ============================================================================
# Helpers
# ============================================================================


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("✗ Configuration not initialized", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_FATAL)
    return state


def _fail(error: CLIValidationError) -> NoReturn:
    typer.secho(f"✗ {format_cli_error(error)}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=EXIT_FATAL)


def _load_graph_or_fail(path: Path, stage: str) -> FeatureGraph:
    try:
        return load_graph(path)
    except GraphFormatError as exc:
        _fail(
            CLIValidationError(
                option="--graph",
                message=str(exc),
                hint="Re-run 'langrefkg extract' to produce a current graph file",
                stage=stage,
            )
        )


def _family_or_fail(value: str, stage: str) -> Family:
    try:
        return parse_family(value)
    except VersionParseError as exc:
        _fail(CLIValidationError(option="--family", message=str(exc), stage=stage))


def _emit_report(report: DiagnosticReport, fmt: ReportFormat) -> int:
    """Print ``report`` to stderr and return the matching exit code."""

    if fmt is ReportFormat.JSON:
        typer.echo(report.render_json(), err=True)
    elif len(report):
        for line in report.render_text().splitlines():
            color = None
            if line.startswith("ERRORS"):
                color = typer.colors.RED
            elif line.startswith("WARNINGS"):
                color = typer.colors.YELLOW
            typer.secho(line, err=True, fg=color)
    return EXIT_ERRORS if report.has_errors else EXIT_OK


# ============================================================================
# Commands
# ============================================================================


@app.command("extract")
def extract_command(
    ctx: typer.Context,
    input_dir: Annotated[Path, typer.Option("--in", help="Directory of Markdown documents")],
    output: Annotated[Path, typer.Option("--out", help="Destination graph JSON file")],
    workers: Annotated[
        Optional[int], typer.Option("--workers", min=1, help="Parallel extraction tasks")
    ] = None,
    policy: Annotated[
        Optional[ExtractionPolicy],
        typer.Option("--policy", case_sensitive=False, help="io=threads, cpu=processes"),
    ] = None,
    fmt: Annotated[ReportFormat, typer.Option("--format", help="Report format")] = ReportFormat.TEXT,
) -> None:
    """Extract feature records from Markdown and write the frozen graph."""

    settings = _state(ctx).settings
    if not input_dir.is_dir():
        _fail(
            CLIValidationError(
                option="--in",
                message=f"input directory {input_dir} does not exist",
                stage="extract",
            )
        )
    paths = discover_documents(input_dir, settings.include, settings.ignore)
    if not paths:
        _fail(
            CLIValidationError(
                option="--in",
                message=f"no documents found under {input_dir}",
                hint=f"Include patterns are {', '.join(settings.include)}",
                stage="extract",
            )
        )

    documents, read_errors = load_documents(input_dir, paths)
    accumulator = ExtractionAccumulator()
    for error in read_errors:
        accumulator.add_error(error)
    extract_documents(
        documents,
        ExtractorConfig.from_settings(settings),
        workers=workers or settings.workers,
        policy=(policy or settings.policy).value,
        accumulator=accumulator,
    )
    result = build_graph(accumulator.drafts, accumulator.links)
    save_graph(result.graph, output)

    report = accumulator.report().merge(result.report)
    typer.echo(
        f"Wrote {len(result.graph.nodes)} features and {len(result.graph.edges)} edges "
        f"from {len(paths)} documents to {output} (generation {result.graph.generation[:12]})"
    )
    raise typer.Exit(code=_emit_report(report, fmt))


@app.command("validate")
def validate_command(
    ctx: typer.Context,
    graph_path: Annotated[Path, typer.Option("--graph", help="Graph JSON file")],
    fmt: Annotated[ReportFormat, typer.Option("--format", help="Report format")] = ReportFormat.TEXT,
) -> None:
    """Check graph-wide invariants and print the aggregated report."""

    _state(ctx)
    graph = _load_graph_or_fail(graph_path, "validate")
    report = validate_references(graph)
    code = _emit_report(report, fmt)
    if fmt is ReportFormat.TEXT:
        typer.echo(f"Checked {len(graph.nodes)} features and {len(graph.edges)} edges")
    raise typer.Exit(code=code)


@app.command("resolve")
def resolve_command(
    ctx: typer.Context,
    graph_path: Annotated[Path, typer.Option("--graph", help="Graph JSON file")],
    family: Annotated[str, typer.Option("--family", help="Language family (c|cpp)")],
    version: Annotated[str, typer.Option("--version", help="Target version, e.g. 17 or C++17")],
    explain: Annotated[
        bool, typer.Option("--explain", help="Also print which feature pulled in each prerequisite")
    ] = False,
    fmt: Annotated[ReportFormat, typer.Option("--format", help="Report format")] = ReportFormat.TEXT,
) -> None:
    """Print the ids of the features available at a version as JSON."""

    _state(ctx)
    graph = _load_graph_or_fail(graph_path, "resolve")
    resolver = VersionResolver(graph)
    language = _family_or_fail(family, "resolve")
    report = DiagnosticReport()
    try:
        resolution = resolver.resolve(language, version)
    except VersionParseError as exc:
        _fail(CLIValidationError(option="--version", message=str(exc), stage="resolve"))
    except CyclicRequirementError as exc:
        report.extend(exc.cycles)
        raise typer.Exit(code=_emit_report(report, fmt))

    report.extend(resolution.warnings)
    if explain:
        payload: Any = resolution.to_dict(explain=True)
    else:
        payload = resolution.sorted_features()
    typer.echo(json.dumps(payload, indent=2))
    raise typer.Exit(code=_emit_report(report, fmt))


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    graph_path: Annotated[Path, typer.Option("--graph", help="Graph JSON file")],
    family: Annotated[str, typer.Option("--family", help="Language family (c|cpp)")],
    base: Annotated[str, typer.Option("--from", help="Base version")],
    target: Annotated[str, typer.Option("--to", help="Target version")],
    fmt: Annotated[ReportFormat, typer.Option("--format", help="Report format")] = ReportFormat.TEXT,
) -> None:
    """Print the features gained and lost between two versions as JSON."""

    _state(ctx)
    graph = _load_graph_or_fail(graph_path, "diff")
    language = _family_or_fail(family, "diff")
    try:
        change = VersionResolver(graph).diff(language, base, target)
    except VersionParseError as exc:
        _fail(CLIValidationError(option="--from/--to", message=str(exc), stage="diff"))
    except CyclicRequirementError as exc:
        raise typer.Exit(code=_emit_report(DiagnosticReport(list(exc.cycles)), fmt))
    typer.echo(json.dumps(change.to_dict(), indent=2))
    raise typer.Exit(code=EXIT_OK)


@app.command("check-examples")
def check_examples_command(
    ctx: typer.Context,
    graph_path: Annotated[Path, typer.Option("--graph", help="Graph JSON file")],
    dialect: Annotated[
        Optional[List[str]],
        typer.Option("--dialect", help="Only check these dialects (repeatable)"),
    ] = None,
    timeout: Annotated[
        Optional[float], typer.Option("--timeout", min=0.1, help="Per-example timeout in seconds")
    ] = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", min=1, help="Syntax-check workers per dialect")
    ] = None,
    fmt: Annotated[ReportFormat, typer.Option("--format", help="Report format")] = ReportFormat.TEXT,
) -> None:
    """Syntax-check every code example with the configured compilers."""

    settings = _state(ctx).settings
    graph = _load_graph_or_fail(graph_path, "check-examples")
    backend = CompilerBackend(
        settings.c_compiler,
        settings.cxx_compiler,
        extra_flags=settings.compiler_flags,
    )
    token = CancellationToken()
    result = validate_examples(
        graph,
        backend,
        dialects=dialect or None,
        timeout_s=timeout or settings.example_timeout_s,
        workers=workers or settings.example_workers,
        token=token,
    )

    if fmt is ReportFormat.JSON:
        payload: Dict[str, Any] = {
            "counts": result.counts(),
            "outcomes": [outcome.to_dict() for outcome in result.outcomes],
        }
        typer.echo(json.dumps(payload, indent=2))
    else:
        for outcome in result.outcomes:
            if outcome.status is ExampleStatus.PASSED:
                continue
            detail = f": {outcome.detail}" if outcome.detail else ""
            typer.echo(
                f"{outcome.status.value:<9} {outcome.location} [{outcome.dialect}] "
                f"{outcome.feature_id}{detail}"
            )
        counts = result.counts()
        typer.echo(", ".join(f"{count} {status}" for status, count in counts.items()))
    raise typer.Exit(code=_emit_report(result.report, fmt))


# ============================================================================
# Config Commands (Introspection)
# ============================================================================


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    fmt: Annotated[DumpFormat, typer.Option("--format", help="Output format")] = DumpFormat.YAML,
) -> None:
    """Display the effective configuration after layering."""

    settings = _state(ctx).settings
    data = settings.model_dump(mode="json")
    if fmt is DumpFormat.JSON:
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=True).rstrip())


# ============================================================================
# Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app(prog_name="langrefkg")


if __name__ == "__main__":
    main()

__all__ = ["app", "main", "EXIT_OK", "EXIT_ERRORS", "EXIT_FATAL"]
