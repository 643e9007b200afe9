"""Schemas for chart template definition files."""

from metric_charts.schemas.template import (
    CurveDefinition,
    TemplateDefinition,
    TemplateDefinitionError,
    TemplateFile,
    load_template_file,
    load_templates,
)

__all__ = [
    "CurveDefinition",
    "TemplateDefinition",
    "TemplateDefinitionError",
    "TemplateFile",
    "load_template_file",
    "load_templates",
]
