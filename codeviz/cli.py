"""CLI entry point for Codeviz."""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from codeviz.config import PipelineConfig
from codeviz.core.exceptions import CodevizError
from codeviz.core.models import UserFriendlyError
from codeviz.core.pipeline import VisualizationPipeline, VisualizationResult
from codeviz.core.recognition import optional_matchers

app = typer.Typer(
    name="codeviz",
    help="Visualize JavaScript/TypeScript code idioms as diagrams.",
    no_args_is_help=True,
)
console = Console()

_SEVERITY_COLORS = {"low": "dim", "medium": "yellow", "high": "red", "critical": "bold red"}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging")] = False,
) -> None:
    """Codeviz command line."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def read_source(path: Path) -> str:
    """Read source text from a file, or stdin when path is '-'."""
    if str(path) == "-":
        return sys.stdin.read()
    if not path.is_file():
        console.print(f"[red]No such file:[/] {path}")
        raise typer.Exit(2)
    return path.read_text(encoding="utf-8")


def get_pipeline(
    threshold: float | None = None, extra: list[str] | None = None
) -> VisualizationPipeline:
    """Build a pipeline from CODEVIZ_* settings.

    ``threshold`` overrides the configured one; ``extra`` names optional
    matchers to register on top of the built-in catalog.
    """
    try:
        config = PipelineConfig.from_env()
        if threshold is not None:
            config = replace(config, confidence_threshold=threshold)
    except CodevizError as e:
        console.print(f"[red]Invalid configuration:[/] {e}")
        raise typer.Exit(2) from e
    pipeline = VisualizationPipeline(config)

    available = {matcher.pattern_type: matcher for matcher in optional_matchers()}
    for name in extra or []:
        if name not in available:
            console.print(f"[red]Unknown optional matcher:[/] {name}")
            raise typer.Exit(2)
        pipeline.engine.register_matcher(available[name])
    return pipeline


def print_error(error: UserFriendlyError) -> None:
    color = _SEVERITY_COLORS.get(error.severity.value, "red")
    location = ""
    if error.context.line is not None:
        location = f" [dim](line {error.context.line}, column {error.context.column})[/]"
    console.print(f"[{color}]{error.message}[/]{location}")
    console.print(f"  {error.description}")
    for suggestion in error.suggestions:
        console.print(f"  [dim]- {suggestion}[/]")


def print_result(result: VisualizationResult) -> None:
    if result.cancelled:
        console.print("[yellow]Cancelled[/]")
        return
    for error in result.errors:
        print_error(error)
    for warning in result.warnings:
        console.print(f"[yellow]! {warning}[/]")
    if not result.success:
        return

    if result.patterns:
        console.print(f"[green]Found {len(result.patterns)} pattern(s)[/]")
    elif result.fallback_used:
        console.print("[yellow]Showing a fallback diagram[/]")
    else:
        console.print("[dim]No known patterns found[/]")

    for pattern in result.patterns:
        console.print(
            f"\n[bold cyan]{pattern.type}[/] [dim]{pattern.id}[/] "
            f"confidence {pattern.confidence:.2f} ({pattern.complexity.value}, "
            f"line {pattern.location.start_line})"
        )
        labels = {node.id: node.label for node in pattern.nodes}
        for node in pattern.nodes:
            console.print(f"  [cyan]{node.label}[/] [dim]({node.type})[/]")
        for connection in pattern.connections:
            console.print(
                f"    {labels[connection.source_id]} [dim]--{connection.label}-->[/] "
                f"{labels[connection.target_id]}"
            )

    if result.diagram is not None:
        console.print(
            f"\n[dim]Diagram: {len(result.diagram.nodes)} nodes, "
            f"{len(result.diagram.edges)} edges[/]"
        )
    for note in result.optimizations:
        console.print(f"[dim]{note}[/]")
    if result.metrics is not None and result.metrics.duration is not None:
        console.print(f"[dim]Completed in {result.metrics.duration:.2f}s[/]")


@app.command()
def visualize(
    path: Annotated[Path, typer.Argument(help="Source file, or '-' for stdin")],
    threshold: Annotated[
        float | None, typer.Option("--threshold", "-t", help="Confidence threshold (0-1)")
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
    extra: Annotated[
        list[str] | None,
        typer.Option("--with", "-w", help="Also run an optional matcher (repeatable)"),
    ] = None,
) -> None:
    """Recognize idioms in a file and build the diagram."""
    text = read_source(path)
    pipeline = get_pipeline(threshold, extra)

    if output_json:
        result = pipeline.visualize_sync(text)
        print(json.dumps(result.to_dict()))
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting", total=100)

            def on_progress(stage: str, percent: int) -> None:
                progress.update(task, completed=percent, description=f"[cyan]{stage}[/]")

            result = pipeline.visualize_sync(text, on_progress)
        print_result(result)

    if not result.success:
        raise typer.Exit(1)


@app.command()
def complexity(
    path: Annotated[Path, typer.Argument(help="Source file, or '-' for stdin")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Estimate how expensive a file is to visualize."""
    text = read_source(path)
    pipeline = get_pipeline()
    metrics = pipeline.analyze_complexity(text)
    decision = pipeline.governor.should_process(metrics)

    if output_json:
        print(json.dumps(decision.to_dict()))
        return

    console.print(f"Level: [bold]{metrics.level.value}[/]")
    console.print(f"  Lines: {metrics.line_count}")
    console.print(f"  Functions: {metrics.function_count}")
    console.print(f"  Variables: {metrics.variable_count}")
    console.print(f"  Imports: {metrics.import_count}")
    console.print(f"  Hooks: {metrics.hook_count}")
    console.print(f"  Max nesting: {metrics.max_nesting_depth}")
    console.print(f"  Estimated time: {metrics.estimated_processing_ms}ms")
    if not decision.should_process:
        console.print("[red]Too large to visualize[/]")
    for warning in decision.warnings:
        console.print(f"[yellow]! {warning}[/]")
    for suggestion in decision.suggestions:
        console.print(f"  [dim]- {suggestion}[/]")


@app.command()
def validate(
    path: Annotated[Path, typer.Argument(help="Source file, or '-' for stdin")],
    output_json: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Check syntax and style without building a diagram."""
    text = read_source(path)
    report = get_pipeline().validate(text)
    validation = report.validation

    if output_json:
        print(json.dumps(report.to_dict()))
    else:
        if validation.is_valid:
            console.print(f"[green]Valid {validation.language}[/]")
        for issue in validation.errors:
            console.print(f"[red]{issue.message}[/] [dim](line {issue.line}, column {issue.column})[/]")
            if issue.suggestion:
                console.print(f"  [dim]- {issue.suggestion}[/]")
        for issue in validation.warnings:
            console.print(f"[yellow]{issue.message}[/] [dim](line {issue.line})[/]")
        for warning in report.admission.warnings:
            console.print(f"[yellow]! {warning}[/]")

    if not validation.is_valid:
        raise typer.Exit(1)


@app.command()
def matchers() -> None:
    """List the registered pattern matchers."""
    pipeline = get_pipeline()
    console.print(f"Confidence threshold: {pipeline.engine.confidence_threshold:.2f}")
    registered = pipeline.engine.registered_pattern_types()
    for pattern_type in registered:
        console.print(f"  [cyan]{pattern_type}[/]")
    for matcher in optional_matchers():
        if matcher.pattern_type not in registered:
            console.print(f"  [dim]{matcher.pattern_type} (optional, enable with --with)[/]")


if __name__ == "__main__":
    app()
