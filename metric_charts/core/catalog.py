"""
Metrics Catalog

Holds the metric names available for charting and answers filter queries
against them. Filters are macro templates in Graphite glob syntax; macros
that are not pinned by a ``where`` predicate become wildcards.

Example usage:
    catalog = MetricsCatalog.from_file("metrics.txt")
    names = (
        catalog.select(MacroTemplate("$host$.load.$metric$"))
        .where("host", "web1")
        .fetch_names()
    )
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from metric_charts.core.macro import MacroTemplate

logger = logging.getLogger(__name__)

# Replacement for macros without a predicate
WILDCARD = "*"


class CatalogError(Exception):
    """Raised when the metrics catalog cannot be read or queried."""

    pass


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """
    Translate a Graphite glob into a compiled regular expression.

    Supported syntax:
        *       any run of characters within one dot-separated node
        ?       a single character within a node
        [...]   a character class within a node, [!...] negated
        {a,b}   alternatives

    Raises:
        CatalogError: If brackets or braces are unbalanced
    """
    regex = []
    i = 0
    depth = 0

    while i < len(pattern):
        char = pattern[i]

        if char == "*":
            regex.append(r"[^.]*")
        elif char == "?":
            regex.append(r"[^.]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                raise CatalogError(f"Unbalanced '[' in filter {pattern!r}")
            body = pattern[i + 1:end]
            body = body.replace("\\", "\\\\")
            # Like * and ?, a class never matches the node separator
            if body.startswith("!"):
                regex.append("[^." + body[1:] + "]")
            else:
                regex.append(r"(?!\.)[" + body + "]")
            i = end
        elif char == "{":
            depth += 1
            regex.append("(?:")
        elif char == "}":
            if depth == 0:
                raise CatalogError(f"Unbalanced '}}' in filter {pattern!r}")
            depth -= 1
            regex.append(")")
        elif char == "," and depth > 0:
            regex.append("|")
        else:
            regex.append(re.escape(char))

        i += 1

    if depth != 0:
        raise CatalogError(f"Unbalanced '{{' in filter {pattern!r}")

    try:
        return re.compile("".join(regex))
    except re.error as e:
        raise CatalogError(f"Invalid filter {pattern!r}: {e}") from e


class MetricsQuery:
    """Fluent interface for querying the metrics catalog."""

    def __init__(self, catalog: "MetricsCatalog", selector: MacroTemplate):
        self._catalog = catalog
        self._selector = selector
        self._filters: Dict[str, str] = {}

    @property
    def selector(self) -> MacroTemplate:
        return self._selector

    def where(self, key: str, value: Any) -> "MetricsQuery":
        """Pin a macro of the selector to a value."""
        self._filters[key] = str(value)
        return self

    def to_glob(self) -> str:
        """Resolve the selector to the glob the catalog is searched with."""
        return self._selector.resolve(self._filters, WILDCARD)

    def fetch_names(self) -> List[str]:
        """Execute the query and return matching metric names in catalog order."""
        glob = self.to_glob()
        regex = glob_to_regex(glob)
        names = [name for name in self._catalog.names if regex.fullmatch(name)]

        logger.debug(f"Filter {glob!r} selected {len(names)} metrics")
        return names

    def count(self) -> int:
        """Count matching metrics."""
        return len(self.fetch_names())

    def first(self) -> Optional[str]:
        """Get the first matching metric name."""
        names = self.fetch_names()
        return names[0] if names else None


class MetricsCatalog:
    """
    An ordered collection of metric names.

    The catalog is the data source charts are generated from. ``client`` is
    an opaque handle passed through to every chart so a renderer knows
    where the metrics came from.
    """

    def __init__(self, names: Iterable[str], client: Any = None):
        # Keep first occurrence order, drop duplicates
        self._names = list(dict.fromkeys(names))
        self.client = client

    @property
    def names(self) -> List[str]:
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def select(self, selector: MacroTemplate) -> MetricsQuery:
        """Start a query narrowed by the given filter template."""
        return MetricsQuery(self, selector)

    @classmethod
    def from_file(cls, path: Path | str, client: Any = None) -> "MetricsCatalog":
        """
        Load metric names from a file.

        Supported formats:
            .json           a list of names, or {"metrics": [...]}
            .yaml / .yml    same shapes as JSON
            anything else   one name per line, '#' starts a comment line

        Raises:
            CatalogError: If the file cannot be read or has the wrong shape
        """
        path = Path(path)

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"Error reading {path}: {e}") from e

        suffix = path.suffix.lower()
        if suffix == ".json":
            try:
                data = json.loads(content)
            except json.JSONDecodeError as e:
                raise CatalogError(f"Invalid JSON in {path}: {e}") from e
            names = cls._names_from_data(data, path)
        elif suffix in (".yaml", ".yml"):
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError as e:
                raise CatalogError(f"Invalid YAML in {path}: {e}") from e
            names = cls._names_from_data(data or [], path)
        else:
            names = [
                line.strip()
                for line in content.splitlines()
                if line.strip() and not line.lstrip().startswith("#")
            ]

        logger.debug(f"Loaded {len(names)} metric names from {path}")
        return cls(names, client=client if client is not None else str(path))

    @staticmethod
    def _names_from_data(data: Any, path: Path) -> List[str]:
        if isinstance(data, dict):
            data = data.get("metrics")

        if not isinstance(data, list) or not all(isinstance(n, str) for n in data):
            raise CatalogError(
                f"{path} must contain a list of metric names or a 'metrics' list"
            )

        return data
