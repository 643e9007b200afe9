"""Chart Templates.

A chart template names the curves that are drawn together on one chart.
Each curve is a metric-name pattern with macros, e.g. ``$host$.load.load1``.
Given a metrics catalog, the template finds every combination of concrete
metrics, one per curve, whose macro bindings agree wherever two curves share
a macro. Each such combination becomes one chart.

Templates are immutable and built with ``TemplateBuilder``:

    template = (
        TemplateBuilder()
        .curve("rta", "$host$.ping.rta")
        .curve("pl", "$host$.ping.pl")
        .param("title", "Ping $host$")
        .build()
    )

    for combination in template.iter_combinations(catalog, {"host": "web1"}):
        ...

    charts = template.get_charts(catalog)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations, product
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

from metric_charts.core.chart import Chart
from metric_charts.core.macro import DEFAULT_DELIMITER, MacroTemplate

if TYPE_CHECKING:
    from metric_charts.core.catalog import MetricsCatalog

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION TYPES
# =============================================================================


@dataclass(frozen=True)
class Curve:
    """One series of a chart.

    Attributes:
        pattern: Metric-name pattern the curve's metrics must match.
        selector: Catalog filter used to find candidates. Defaults to the
            pattern itself. Predicates on macros the selector lacks are
            checked against the pattern bindings instead.
        function: Optional render expression wrapping ``$metric$``.
    """

    pattern: MacroTemplate
    selector: Optional[MacroTemplate] = None
    function: Optional[MacroTemplate] = None

    @property
    def filter(self) -> MacroTemplate:
        """The template the catalog is queried with."""
        return self.selector if self.selector is not None else self.pattern


# Per-invocation working types
MetricMatches = dict[str, dict[str, dict[str, str]]]
Overlaps = dict[tuple[str, str], frozenset[str]]


class ChartTemplate:
    """Immutable set of curves and extra parameters for one kind of chart."""

    def __init__(
        self,
        curves: Mapping[str, Curve],
        params: Optional[Mapping[str, MacroTemplate]] = None,
        description: Optional[str] = None,
    ):
        self._curves = MappingProxyType(dict(curves))
        self._params = MappingProxyType(dict(params or {}))
        self.description = description

    @property
    def curves(self) -> Mapping[str, Curve]:
        """Curves by name, in configured order."""
        return self._curves

    @property
    def params(self) -> Mapping[str, MacroTemplate]:
        """Extra chart parameters by name."""
        return self._params

    def with_curves(self, curves: Mapping[str, Curve]) -> ChartTemplate:
        """Return a copy of this template with other curves."""
        return ChartTemplate(curves, self._params, self.description)

    def with_params(self, params: Mapping[str, MacroTemplate]) -> ChartTemplate:
        """Return a copy of this template with other parameters."""
        return ChartTemplate(self._curves, params, self.description)

    def iter_combinations(
        self,
        catalog: MetricsCatalog,
        predicates: Optional[Mapping[str, Any]] = None,
    ) -> Iterator[Mapping[str, str]]:
        """Lazily yield all consistent curve-to-metric combinations."""
        return generate_combinations(self, catalog, predicates)

    def get_charts(
        self,
        catalog: MetricsCatalog,
        predicates: Optional[Mapping[str, Any]] = None,
    ) -> list[Chart]:
        """Build one chart per consistent combination.

        Args:
            catalog: Metrics catalog to query.
            predicates: Macro values every curve's query is narrowed by.

        Returns:
            Charts in combination order. Empty if nothing matched.

        Raises:
            CatalogError: If querying the catalog fails.
        """
        charts = [
            Chart(catalog.client, self, combination)
            for combination in generate_combinations(self, catalog, predicates)
        ]
        logger.info(f"Generated {len(charts)} charts from {len(self._curves)} curves")
        return charts

    def __repr__(self) -> str:
        return f"ChartTemplate(curves={list(self._curves)!r}, params={list(self._params)!r})"


class TemplateBuilder:
    """Collects curves and parameters, then builds a ChartTemplate."""

    def __init__(self, delimiter: str = DEFAULT_DELIMITER):
        self._delimiter = delimiter
        self._curves: dict[str, Curve] = {}
        self._params: dict[str, MacroTemplate] = {}
        self._description: Optional[str] = None

    def _template(self, value: MacroTemplate | str | None) -> Optional[MacroTemplate]:
        if value is None or isinstance(value, MacroTemplate):
            return value
        return MacroTemplate(value, self._delimiter)

    def curve(
        self,
        name: str,
        pattern: MacroTemplate | str,
        selector: MacroTemplate | str | None = None,
        function: MacroTemplate | str | None = None,
    ) -> TemplateBuilder:
        """Add a curve. A later curve with the same name replaces it."""
        self._curves[name] = Curve(
            pattern=self._template(pattern),
            selector=self._template(selector),
            function=self._template(function),
        )
        return self

    def param(self, name: str, value: MacroTemplate | str) -> TemplateBuilder:
        """Add an extra chart parameter."""
        self._params[name] = self._template(value)
        return self

    def description(self, text: Optional[str]) -> TemplateBuilder:
        self._description = text
        return self

    def build(self) -> ChartTemplate:
        return ChartTemplate(self._curves, self._params, self._description)


# =============================================================================
# COMBINATION GENERATION
# =============================================================================


def resolve_metrics(
    template: ChartTemplate,
    catalog: MetricsCatalog,
    predicates: Optional[Mapping[str, Any]] = None,
) -> MetricMatches:
    """Find the catalog metrics matching each curve.

    Curves without a single match are left out of the result.

    Returns:
        Bindings by metric name, by curve name, both in query order.
    """
    metrics: MetricMatches = {}

    pinned = {key: str(value) for key, value in (predicates or {}).items()}

    for curve_name, curve in template.curves.items():
        query = catalog.select(curve.filter)
        for key, value in pinned.items():
            query.where(key, value)

        matches: dict[str, dict[str, str]] = {}
        for metric in query.fetch_names():
            bindings = curve.pattern.reverse_resolve(metric)
            if bindings is None:
                logger.debug(f"Curve {curve_name!r}: {metric!r} does not match {curve.pattern}")
                continue
            if any(bindings.get(key, value) != value for key, value in pinned.items()):
                logger.debug(f"Curve {curve_name!r}: {metric!r} is excluded by the filters")
                continue
            matches[metric] = bindings

        logger.debug(f"Curve {curve_name!r}: {len(matches)} matching metrics")
        if matches:
            metrics[curve_name] = matches

    return metrics


def find_overlaps(template: ChartTemplate, curve_names: list[str]) -> Overlaps:
    """Find the macros each pair of curves has in common.

    Every unordered pair is checked once, keyed by configured order.
    Pairs without common macros are not recorded.
    """
    overlaps: Overlaps = {}

    for first, second in combinations(curve_names, 2):
        shared = template.curves[first].pattern.macros & template.curves[second].pattern.macros
        if shared:
            logger.debug(f"Curves {first!r} and {second!r} share {sorted(shared)}")
            overlaps[(first, second)] = shared

    return overlaps


def is_consistent(
    selection: Mapping[str, str],
    metrics: MetricMatches,
    overlaps: Overlaps,
) -> bool:
    """Check that the selected metrics agree on every shared macro."""
    for (first, second), shared in overlaps.items():
        first_bindings = metrics[first][selection[first]]
        second_bindings = metrics[second][selection[second]]
        for macro in shared:
            if first_bindings[macro] != second_bindings[macro]:
                return False

    return True


def generate_combinations(
    template: ChartTemplate,
    catalog: MetricsCatalog,
    predicates: Optional[Mapping[str, Any]] = None,
) -> Iterator[Mapping[str, str]]:
    """Yield every consistent selection of one metric per matching curve.

    The catalog is queried on the first step of the iteration; calling this
    again starts over with a fresh query. Combinations follow the cartesian
    product of the curves' matches in configured order, the last curve
    varying fastest.

    Args:
        template: Chart template providing the curves.
        catalog: Metrics catalog to query.
        predicates: Macro values every curve's query is narrowed by.

    Yields:
        Read-only mappings of curve name to metric name.

    Raises:
        CatalogError: If querying the catalog fails.
    """
    metrics = resolve_metrics(template, catalog, predicates)
    if not metrics:
        return

    curve_names = list(metrics)
    overlaps = find_overlaps(template, curve_names)

    for choice in product(*(list(metrics[name]) for name in curve_names)):
        selection = dict(zip(curve_names, choice))
        if is_consistent(selection, metrics, overlaps):
            yield MappingProxyType(selection)
