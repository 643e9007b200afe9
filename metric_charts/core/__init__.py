"""Core modules for metric-charts."""

from .macro import (
    MacroTemplate,
    MacroTemplateError,
    match,
    variable_names,
)

from .catalog import (
    CatalogError,
    MetricsCatalog,
    MetricsQuery,
)

from .template import (
    ChartTemplate,
    Curve,
    TemplateBuilder,
    generate_combinations,
)

from .chart import Chart

__all__ = [
    # Macros
    "MacroTemplate",
    "MacroTemplateError",
    "match",
    "variable_names",
    # Catalog
    "CatalogError",
    "MetricsCatalog",
    "MetricsQuery",
    # Templates
    "ChartTemplate",
    "Curve",
    "TemplateBuilder",
    "generate_combinations",
    "Chart",
]
