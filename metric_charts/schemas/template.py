"""Chart template definition schemas and YAML loading.

Template files look like this:

    delimiter: "$"
    templates:
      ping:
        description: Round trip time and packet loss
        curves:
          rta:
            pattern: "$host$.ping.rta"
            function: "alias($metric$, 'RTA')"
          pl:
            pattern: "$host$.ping.pl"
        params:
          title: "Ping $host$"
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from metric_charts.core.macro import DEFAULT_DELIMITER, MacroTemplate, MacroTemplateError
from metric_charts.core.template import ChartTemplate, TemplateBuilder


class TemplateDefinitionError(Exception):
    """Raised when template definitions cannot be loaded."""

    pass


class CurveDefinition(BaseModel):
    """Definition of one curve."""

    pattern: str = Field(..., min_length=1, description="Metric-name pattern with macros")
    selector: Optional[str] = Field(
        None, description="Catalog filter, defaults to the pattern"
    )
    function: Optional[str] = Field(
        None, description="Render expression wrapping $metric$"
    )


class TemplateDefinition(BaseModel):
    """Definition of one chart template."""

    description: Optional[str] = Field(None, description="What the chart shows")
    curves: dict[str, CurveDefinition] = Field(..., min_length=1)
    params: dict[str, str] = Field(default_factory=dict, description="Extra chart parameters")

    def to_template(self, delimiter: str = DEFAULT_DELIMITER) -> ChartTemplate:
        """Build the immutable chart template."""
        builder = TemplateBuilder(delimiter).description(self.description)
        for name, curve in self.curves.items():
            builder.curve(name, curve.pattern, curve.selector, curve.function)
        for name, value in self.params.items():
            builder.param(name, value)
        return builder.build()


class TemplateFile(BaseModel):
    """Contents of one template YAML file."""

    delimiter: str = Field(DEFAULT_DELIMITER, min_length=1)
    templates: dict[str, TemplateDefinition] = Field(default_factory=dict)

    @field_validator("templates")
    @classmethod
    def validate_names(cls, v: dict[str, TemplateDefinition]) -> dict[str, TemplateDefinition]:
        for name in v:
            if not name.strip():
                raise ValueError("Template names must not be empty")
        return v

    @model_validator(mode="after")
    def validate_macros(self) -> "TemplateFile":
        """Check that every template string has balanced delimiters."""
        for name, definition in self.templates.items():
            values = list(definition.params.values())
            for curve in definition.curves.values():
                values.extend(v for v in (curve.pattern, curve.selector, curve.function) if v)

            for value in values:
                try:
                    MacroTemplate(value, self.delimiter)
                except MacroTemplateError as e:
                    raise ValueError(f"Template '{name}': {e}") from e

        return self

    def to_templates(self) -> dict[str, ChartTemplate]:
        return {
            name: definition.to_template(self.delimiter)
            for name, definition in self.templates.items()
        }


def _template_files(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted(
            p for p in path.iterdir()
            if p.is_file() and p.suffix.lower() in (".yaml", ".yml")
        )
    return [path]


def load_template_file(path: Path | str) -> TemplateFile:
    """Load and validate one template file.

    Raises:
        TemplateDefinitionError: If the file is unreadable or invalid.
    """
    path = Path(path)

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TemplateDefinitionError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise TemplateDefinitionError(f"Error reading {path}: {e}") from e

    try:
        return TemplateFile.model_validate(data or {})
    except ValidationError as e:
        raise TemplateDefinitionError(f"Invalid template definitions in {path}: {e}") from e


def load_templates(*paths: Path | str) -> dict[str, ChartTemplate]:
    """Load chart templates from files and directories.

    Directories contribute every *.yaml and *.yml file in name order.

    Returns:
        Chart templates by name.

    Raises:
        TemplateDefinitionError: On invalid files or duplicate template names.
    """
    templates: dict[str, ChartTemplate] = {}
    origins: dict[str, Path] = {}

    for path in paths:
        for file in _template_files(Path(path)):
            for name, template in load_template_file(file).to_templates().items():
                if name in templates:
                    raise TemplateDefinitionError(
                        f"Template '{name}' in {file} is already defined in {origins[name]}"
                    )
                templates[name] = template
                origins[name] = file

    return templates
