"""Tests for chart templates and combination generation."""

import logging

import pytest

from metric_charts.core.catalog import CatalogError, MetricsCatalog
from metric_charts.core.chart import Chart
from metric_charts.core.macro import MacroTemplate
from metric_charts.core.template import (
    ChartTemplate,
    Curve,
    TemplateBuilder,
    find_overlaps,
    generate_combinations,
    resolve_metrics,
)


class CountingCatalog(MetricsCatalog):
    """Catalog that records how often it was queried."""

    def __init__(self, names):
        super().__init__(names, client="counting")
        self.selects = 0

    def select(self, selector):
        self.selects += 1
        return super().select(selector)


class BrokenCatalog(MetricsCatalog):
    """Catalog whose backend is unavailable."""

    def select(self, selector):
        raise CatalogError("backend unavailable")


def as_dicts(combinations):
    return [dict(c) for c in combinations]


# =============================================================================
# TEMPLATE CONFIGURATION
# =============================================================================


class TestTemplateBuilder:
    """Tests for building templates."""

    def test_build(self, ping_template):
        assert list(ping_template.curves) == ["rta", "pl"]
        assert ping_template.curves["pl"].pattern == MacroTemplate("$host$.ping.pl")
        assert ping_template.params["title"] == MacroTemplate("Ping $host$")

    def test_selector_defaults_to_pattern(self, ping_template):
        curve = ping_template.curves["pl"]

        assert curve.selector is None
        assert curve.filter is curve.pattern

    def test_custom_delimiter(self):
        template = TemplateBuilder(delimiter="%").curve("a", "%host%.a").build()

        assert template.curves["a"].pattern.macros == frozenset({"host"})

    def test_same_name_replaces_curve(self):
        template = TemplateBuilder().curve("a", "$x$.a").curve("a", "$x$.b").build()

        assert len(template.curves) == 1
        assert str(template.curves["a"].pattern) == "$x$.b"


class TestChartTemplate:
    """Tests for the immutable template configuration."""

    def test_curves_are_read_only(self, ping_template):
        with pytest.raises(TypeError):
            ping_template.curves["new"] = Curve(MacroTemplate("x"))

    def test_params_are_read_only(self, ping_template):
        with pytest.raises(TypeError):
            ping_template.params["title"] = MacroTemplate("x")

    def test_with_curves_returns_copy(self, ping_template):
        curves = {"load": Curve(MacroTemplate("$host$.load.load1"))}

        changed = ping_template.with_curves(curves)

        assert list(changed.curves) == ["load"]
        assert dict(changed.params) == dict(ping_template.params)
        assert list(ping_template.curves) == ["rta", "pl"]

    def test_with_params_returns_copy(self, ping_template):
        changed = ping_template.with_params({})

        assert dict(changed.params) == {}
        assert list(changed.curves) == ["rta", "pl"]
        assert "title" in ping_template.params

    def test_source_mapping_changes_do_not_leak(self):
        curves = {"a": Curve(MacroTemplate("$x$.a"))}
        template = ChartTemplate(curves)

        curves["b"] = Curve(MacroTemplate("$x$.b"))

        assert list(template.curves) == ["a"]


# =============================================================================
# COMBINATION GENERATION
# =============================================================================


class TestResolveMetrics:
    """Tests for per-curve resolution."""

    def test_bindings_per_curve(self, ping_template, sample_catalog):
        metrics = resolve_metrics(ping_template, sample_catalog)

        assert metrics == {
            "rta": {"web1.ping.rta": {"host": "web1"}, "db1.ping.rta": {"host": "db1"}},
            "pl": {"web1.ping.pl": {"host": "web1"}, "db1.ping.pl": {"host": "db1"}},
        }

    def test_candidates_not_matching_pattern_are_skipped(self, sample_catalog):
        template = TemplateBuilder().curve("rta", "$host$.ping.rta", selector="*.ping.*").build()

        metrics = resolve_metrics(template, sample_catalog)

        assert list(metrics["rta"]) == ["web1.ping.rta", "db1.ping.rta"]

    def test_selector_narrows_candidates(self, sample_catalog):
        template = TemplateBuilder().curve("rta", "$host$.ping.rta", selector="web*.ping.rta").build()

        assert list(resolve_metrics(template, sample_catalog)["rta"]) == ["web1.ping.rta"]

    def test_predicates_apply_when_selector_lacks_macro(self, sample_catalog):
        template = TemplateBuilder().curve("rta", "$host$.ping.rta", selector="*.ping.rta").build()

        metrics = resolve_metrics(template, sample_catalog, {"host": "db1"})

        assert metrics == {"rta": {"db1.ping.rta": {"host": "db1"}}}

    def test_predicates_for_unknown_macros_ignored(self, ping_template, sample_catalog):
        metrics = resolve_metrics(ping_template, sample_catalog, {"service": "ping4"})

        assert list(metrics["rta"]) == ["web1.ping.rta", "db1.ping.rta"]

    def test_empty_curves_left_out(self, sample_catalog):
        template = (
            TemplateBuilder()
            .curve("rta", "$host$.ping.rta")
            .curve("cpu", "$host$.cpu.user")
            .build()
        )

        assert list(resolve_metrics(template, sample_catalog)) == ["rta"]


class TestFindOverlaps:
    """Tests for shared-macro detection."""

    def test_each_pair_recorded_once(self):
        template = (
            TemplateBuilder()
            .curve("a", "$host$.a")
            .curve("b", "$host$.$period$.b")
            .curve("c", "$period$.c")
            .build()
        )

        overlaps = find_overlaps(template, ["a", "b", "c"])

        assert overlaps == {
            ("a", "b"): frozenset({"host"}),
            ("b", "c"): frozenset({"period"}),
        }

    def test_no_shared_macros(self):
        template = TemplateBuilder().curve("a", "$x$.a").curve("b", "$y$.b").build()

        assert find_overlaps(template, ["a", "b"]) == {}

    def test_only_given_curves_considered(self):
        template = TemplateBuilder().curve("a", "$x$.a").curve("b", "$x$.b").build()

        assert find_overlaps(template, ["a"]) == {}


class TestGenerateCombinations:
    """Tests for generate_combinations."""

    def test_no_overlap_gives_full_cross_product(self, sample_catalog):
        template = (
            TemplateBuilder()
            .curve("rta", "$host$.ping.rta")
            .curve("load", "$other$.load.$period$")
            .build()
        )

        result = as_dicts(generate_combinations(template, sample_catalog))

        assert len(result) == 2 * 3
        assert result == [
            {"rta": "web1.ping.rta", "load": "web1.load.load1"},
            {"rta": "web1.ping.rta", "load": "web1.load.load5"},
            {"rta": "web1.ping.rta", "load": "db1.load.load1"},
            {"rta": "db1.ping.rta", "load": "web1.load.load1"},
            {"rta": "db1.ping.rta", "load": "web1.load.load5"},
            {"rta": "db1.ping.rta", "load": "db1.load.load1"},
        ]

    def test_single_curve(self, sample_catalog):
        template = TemplateBuilder().curve("load", "$host$.load.$period$").build()

        result = as_dicts(generate_combinations(template, sample_catalog))

        assert result == [
            {"load": "web1.load.load1"},
            {"load": "web1.load.load5"},
            {"load": "db1.load.load1"},
        ]

    def test_overlap_filters_inconsistent_combinations(self):
        catalog = MetricsCatalog(["x.a", "y.a", "x.b", "y.b"])
        template = TemplateBuilder().curve("A", "$host$.a").curve("B", "$host$.b").build()

        result = as_dicts(generate_combinations(template, catalog))

        assert result == [
            {"A": "x.a", "B": "x.b"},
            {"A": "y.a", "B": "y.b"},
        ]

    def test_chained_overlaps(self):
        catalog = MetricsCatalog([
            "h1.a", "h2.a",
            "h1.p1.b", "h1.p2.b", "h2.p1.b",
            "p1.c", "p2.c",
        ])
        template = (
            TemplateBuilder()
            .curve("a", "$host$.a")
            .curve("b", "$host$.$period$.b")
            .curve("c", "$period$.c")
            .build()
        )

        result = as_dicts(generate_combinations(template, catalog))

        assert result == [
            {"a": "h1.a", "b": "h1.p1.b", "c": "p1.c"},
            {"a": "h1.a", "b": "h1.p2.b", "c": "p2.c"},
            {"a": "h2.a", "b": "h2.p1.b", "c": "p1.c"},
        ]

    def test_no_consistent_combination(self):
        catalog = MetricsCatalog(["x.a", "y.b"])
        template = TemplateBuilder().curve("A", "$host$.a").curve("B", "$host$.b").build()

        assert list(generate_combinations(template, catalog)) == []

    def test_all_curves_empty(self):
        catalog = CountingCatalog(["web1.load.load1"])
        template = TemplateBuilder().curve("A", "$host$.a").curve("B", "$host$.b").build()

        assert list(generate_combinations(template, catalog)) == []
        assert catalog.selects == 2

    def test_empty_curve_omitted_from_combinations(self, sample_catalog):
        template = (
            TemplateBuilder()
            .curve("rta", "$host$.ping.rta")
            .curve("cpu", "$node$.cpu.user")
            .build()
        )

        result = as_dicts(generate_combinations(template, sample_catalog))

        assert result == [{"rta": "web1.ping.rta"}, {"rta": "db1.ping.rta"}]

    def test_empty_curve_sharing_macros_omitted(self, sample_catalog):
        template = (
            TemplateBuilder()
            .curve("rta", "$host$.ping.rta")
            .curve("cpu", "$host$.cpu.user")
            .build()
        )

        result = as_dicts(generate_combinations(template, sample_catalog))

        assert result == [{"rta": "web1.ping.rta"}, {"rta": "db1.ping.rta"}]

    def test_predicates_narrow_every_curve(self, ping_template, sample_catalog):
        result = as_dicts(generate_combinations(ping_template, sample_catalog, {"host": "db1"}))

        assert result == [{"rta": "db1.ping.rta", "pl": "db1.ping.pl"}]

    def test_idempotent(self, ping_template, sample_catalog):
        first = as_dicts(generate_combinations(ping_template, sample_catalog))
        second = as_dicts(generate_combinations(ping_template, sample_catalog))

        assert first == second
        assert len(first) == 2

    def test_curve_order_does_not_change_accepted_combinations(self, sample_catalog):
        forward = TemplateBuilder().curve("rta", "$host$.ping.rta").curve("pl", "$host$.ping.pl").build()
        backward = TemplateBuilder().curve("pl", "$host$.ping.pl").curve("rta", "$host$.ping.rta").build()

        def accepted(template):
            return {frozenset(c.items()) for c in generate_combinations(template, sample_catalog)}

        assert accepted(forward) == accepted(backward)

    def test_combinations_are_read_only(self, ping_template, sample_catalog):
        combination = next(generate_combinations(ping_template, sample_catalog))

        with pytest.raises(TypeError):
            combination["rta"] = "other"

    def test_lazy_until_iterated(self, ping_template):
        catalog = CountingCatalog(["web1.ping.rta", "web1.ping.pl"])

        combinations = generate_combinations(ping_template, catalog)
        assert catalog.selects == 0

        assert next(combinations) == {"rta": "web1.ping.rta", "pl": "web1.ping.pl"}
        assert catalog.selects == 2

    def test_restart_queries_again(self, ping_template):
        catalog = CountingCatalog(["web1.ping.rta", "web1.ping.pl"])

        list(ping_template.iter_combinations(catalog))
        list(ping_template.iter_combinations(catalog))

        assert catalog.selects == 4

    def test_catalog_error_propagates(self, ping_template):
        catalog = BrokenCatalog([])

        with pytest.raises(CatalogError, match="backend unavailable"):
            list(generate_combinations(ping_template, catalog))

    def test_logs_match_counts(self, ping_template, sample_catalog, caplog):
        with caplog.at_level(logging.DEBUG, logger="metric_charts.core.template"):
            list(generate_combinations(ping_template, sample_catalog))

        assert "Curve 'rta': 2 matching metrics" in caplog.text


class TestGetCharts:
    """Tests for ChartTemplate.get_charts."""

    def test_one_chart_per_combination(self, ping_template, sample_catalog):
        charts = ping_template.get_charts(sample_catalog)

        assert len(charts) == 2
        assert all(isinstance(c, Chart) for c in charts)
        assert dict(charts[0].metrics) == {"rta": "web1.ping.rta", "pl": "web1.ping.pl"}
        assert charts[0].template is ping_template
        assert charts[0].data_source == "graphite-test"

    def test_no_charts(self, ping_template):
        assert ping_template.get_charts(MetricsCatalog([])) == []
