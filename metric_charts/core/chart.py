"""Chart records produced by chart templates."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from metric_charts.core.template import ChartTemplate, Curve


@dataclass(frozen=True)
class Chart:
    """One consistent combination of metrics, ready to be rendered.

    Attributes:
        data_source: Handle of the catalog the metrics came from.
        template: The chart template that produced this chart.
        metrics: Selected metric name by curve name.
    """

    data_source: Any
    template: ChartTemplate
    metrics: Mapping[str, str]

    def __post_init__(self):
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    @property
    def curves(self) -> dict[str, Curve]:
        """Curves present in this chart, in configured order."""
        return {
            name: curve
            for name, curve in self.template.curves.items()
            if name in self.metrics
        }

    @property
    def variables(self) -> dict[str, str]:
        """Macro values of all selected metrics merged together."""
        variables: dict[str, str] = {}
        for name, curve in self.curves.items():
            variables.update(curve.pattern.reverse_resolve(self.metrics[name]) or {})
        return variables

    def resolve_params(self, default: Any = False) -> dict[str, str]:
        """Resolve the template's extra parameters with this chart's variables.

        Macros without a value are kept unless another default is given.
        """
        variables = self.variables
        return {
            name: param.resolve(variables, default)
            for name, param in self.template.params.items()
        }

    def targets(self) -> dict[str, str]:
        """Render expression of every curve.

        A curve's function is resolved with ``metric`` set to the selected
        metric name. Curves without a function render the bare metric.
        """
        variables = self.variables
        targets = {}
        for name, curve in self.curves.items():
            metric = self.metrics[name]
            if curve.function is None:
                targets[name] = metric
            else:
                targets[name] = curve.function.resolve({**variables, "metric": metric}, False)
        return targets

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": dict(self.metrics),
            "variables": self.variables,
            "params": self.resolve_params(),
            "targets": self.targets(),
        }
