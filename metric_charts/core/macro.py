"""Macro Templates.

A macro template is a string with named placeholders enclosed in a
delimiter, e.g. ``$host$.load.$metric$``. Templates work in both directions:

- ``resolve`` substitutes variables into the template
- ``reverse_resolve`` matches a concrete string against the template and
  extracts the variable bindings

An empty macro (``$$``) stands for a literal delimiter.

Example usage:
    from metric_charts.core.macro import MacroTemplate

    template = MacroTemplate("$host$.load.$metric$")
    template.macros                                   # frozenset({"host", "metric"})
    template.resolve({"host": "web1", "metric": "load1"})  # "web1.load.load1"
    template.reverse_resolve("web1.load.load15")      # {"host": "web1", "metric": "load15"}
    template.reverse_resolve("web1.cpu")              # None
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional


DEFAULT_DELIMITER = "$"


class MacroTemplateError(ValueError):
    """Raised when a template is malformed or cannot be resolved."""

    pass


class MacroTemplate:
    """An immutable string template with ``$name$`` style macros."""

    __slots__ = ("_template", "_delimiter", "_parts", "_macros", "_regex", "_groups")

    def __init__(self, template: str, delimiter: str = DEFAULT_DELIMITER):
        if not delimiter:
            raise MacroTemplateError("Macro delimiter must not be empty")

        parts = template.split(delimiter)
        if len(parts) % 2 == 0:
            raise MacroTemplateError(
                f"Unbalanced macro delimiter {delimiter!r} in template {template!r}"
            )

        self._template = template
        self._delimiter = delimiter
        # Even indices are literals, odd indices are macro names
        self._parts = tuple(parts)
        self._macros = frozenset(name for name in parts[1::2] if name)
        self._regex: Optional[re.Pattern[str]] = None
        self._groups: dict[str, str] = {}

    @property
    def template(self) -> str:
        return self._template

    @property
    def delimiter(self) -> str:
        return self._delimiter

    @property
    def macros(self) -> frozenset[str]:
        """Names of all macros used in this template."""
        return self._macros

    def resolve(self, variables: Mapping[str, Any], default: Any = None) -> str:
        """Substitute variables into the template.

        Args:
            variables: Values by macro name.
            default: What to do with macros that have no value. None raises
                MacroTemplateError, False keeps the macro as is, anything
                else is substituted.

        Returns:
            The resolved string.

        Raises:
            MacroTemplateError: If a macro has no value and default is None.
        """
        resolved = []
        for index, part in enumerate(self._parts):
            if index % 2 == 0:
                resolved.append(part)
            elif part == "":
                resolved.append(self._delimiter)
            elif part in variables:
                resolved.append(str(variables[part]))
            elif default is None:
                raise MacroTemplateError(
                    f"No value for macro {part!r} in template {self._template!r}"
                )
            elif default is False:
                resolved.append(f"{self._delimiter}{part}{self._delimiter}")
            else:
                resolved.append(str(default))

        return "".join(resolved)

    def reverse_resolve(self, resolved: str) -> Optional[dict[str, str]]:
        """Extract macro values from a string this template could resolve to.

        Args:
            resolved: A concrete string, e.g. a metric name.

        Returns:
            Values by macro name, or None if the string does not match.
        """
        match = self._get_regex().fullmatch(resolved)
        if match is None:
            return None

        return {macro: match.group(group) for macro, group in self._groups.items()}

    def _get_regex(self) -> re.Pattern[str]:
        """Compile the template into a regular expression once."""
        if self._regex is not None:
            return self._regex

        pattern = []
        groups: dict[str, str] = {}
        for index, part in enumerate(self._parts):
            if index % 2 == 0:
                pattern.append(re.escape(part))
            elif part == "":
                pattern.append(re.escape(self._delimiter))
            elif part in groups:
                # Repeated macros must bind the same value
                pattern.append(f"(?P={groups[part]})")
            else:
                # Macro names need not be valid group names
                groups[part] = f"m{len(groups)}"
                pattern.append(f"(?P<{groups[part]}>.*)")

        self._groups = groups
        self._regex = re.compile("".join(pattern), re.DOTALL)
        return self._regex

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MacroTemplate):
            return NotImplemented
        return self._template == other._template and self._delimiter == other._delimiter

    def __hash__(self) -> int:
        return hash((self._template, self._delimiter))

    def __str__(self) -> str:
        return self._template

    def __repr__(self) -> str:
        return f"MacroTemplate({self._template!r})"


def variable_names(template: MacroTemplate) -> frozenset[str]:
    """Return the variable names a template contains."""
    return template.macros


def match(template: MacroTemplate, name: str) -> Optional[dict[str, str]]:
    """Match a concrete name against a template.

    Returns the variable bindings, or None if the name does not fit.
    """
    return template.reverse_resolve(name)
