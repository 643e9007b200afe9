"""CLI commands for metric-charts.

Usage:
    metric-charts templates --templates ./templates
    metric-charts charts ping --metrics metrics.txt --filter host=web1
    python -m metric_charts.cli.main charts ping --limit 10

Paths that are not given on the command line are taken from
metric-charts.yaml (see --config).
"""

import json
from itertools import islice
from pathlib import Path
from typing import Annotated, Optional

import typer

from metric_charts import __version__
from metric_charts.core.catalog import CatalogError, MetricsCatalog
from metric_charts.core.chart import Chart
from metric_charts.core.config import (
    CONFIG_FILE_NAME,
    Config,
    ConfigurationError,
    load_config,
    validate_config,
)
from metric_charts.core.logging import get_logger, setup_logging
from metric_charts.core.template import ChartTemplate
from metric_charts.schemas.template import TemplateDefinitionError, load_templates

logger = get_logger(__name__)

app = typer.Typer(
    name="metric-charts",
    help="Find the metric combinations chart templates can be drawn for.",
    no_args_is_help=True,
)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help=f"Configuration file (default: ./{CONFIG_FILE_NAME})"),
]
TemplatesOption = Annotated[
    Optional[list[Path]],
    typer.Option("--templates", "-t", help="Template file or directory (repeatable)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Also write log messages to stderr"),
]


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _load_config(path: Optional[Path]) -> Config:
    try:
        return load_config(path)
    except ConfigurationError as e:
        _fail(str(e))


def _base_path(config: Optional[Path]) -> Path:
    """Directory relative config paths and the log directory are based on."""
    return config.parent if config is not None else Path.cwd()


def _setup(config: Optional[Path], verbose: bool) -> Config:
    """Load the configuration and start logging to its log directory."""
    settings = _load_config(config)
    setup_logging(_base_path(config), settings, console=verbose)
    return settings


def _load_templates(config: Config, paths: Optional[list[Path]]) -> dict[str, ChartTemplate]:
    try:
        return load_templates(*(paths or config.templates.paths))
    except TemplateDefinitionError as e:
        _fail(str(e))


def parse_filters(filters: list[str]) -> dict[str, str]:
    """Parse key=value filter arguments.

    Raises:
        typer.BadParameter: If an argument has no '='.
    """
    predicates = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Filter must look like key=value, got {item!r}")
        predicates[key] = value
    return predicates


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"metric-charts {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
):
    """Find the metric combinations chart templates can be drawn for."""


@app.command("templates")
def list_templates(
    templates: TemplatesOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """List the available chart templates and their curves."""
    settings = _setup(config, verbose)

    for warning in validate_config(settings, _base_path(config)):
        typer.secho(f"Warning: {warning}", fg=typer.colors.YELLOW, err=True)

    loaded = _load_templates(settings, templates)
    logger.info(f"Loaded {len(loaded)} templates")

    if not loaded:
        typer.echo("No templates found")
        return

    for name, template in loaded.items():
        line = f"{name}: {', '.join(template.curves)}"
        if template.description:
            line += f"  ({template.description})"
        typer.echo(line)


@app.command("charts")
def charts(
    template_name: Annotated[str, typer.Argument(help="Name of the chart template")],
    metrics: Annotated[
        Optional[Path],
        typer.Option("--metrics", "-m", help="File with the available metric names"),
    ] = None,
    filters: Annotated[
        Optional[list[str]],
        typer.Option("--filter", "-f", help="Macro value as key=value (repeatable)"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-n", min=1, help="Stop after this many charts"),
    ] = None,
    templates: TemplatesOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """Print every chart a template yields for the catalog as JSON.

    Examples:
        metric-charts charts ping --metrics metrics.txt
        metric-charts charts ping -m metrics.txt -f host=web1 -f service=ping4
    """
    settings = _setup(config, verbose)

    try:
        predicates = parse_filters(filters or [])
    except typer.BadParameter as e:
        _fail(e.message)

    loaded = _load_templates(settings, templates)

    template = loaded.get(template_name)
    if template is None:
        _fail(f"Unknown template '{template_name}'. Available: {', '.join(loaded) or 'none'}")

    metrics_path = metrics or (Path(settings.catalog.path) if settings.catalog.path else None)
    if metrics_path is None:
        _fail("No metrics file. Use --metrics or set catalog.path in the configuration.")

    try:
        catalog = MetricsCatalog.from_file(metrics_path)
        combinations = islice(template.iter_combinations(catalog, predicates), limit)
        result = [Chart(catalog.client, template, c).to_dict() for c in combinations]
    except CatalogError as e:
        logger.error(str(e))
        _fail(str(e))

    logger.info(f"Template '{template_name}' yielded {len(result)} charts")
    typer.echo(json.dumps(result, indent=2))


if __name__ == "__main__":
    app()
