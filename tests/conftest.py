"""Pytest configuration and fixtures."""

import json
import pytest
import tempfile
from pathlib import Path

import yaml

from metric_charts.core.catalog import MetricsCatalog
from metric_charts.core.template import TemplateBuilder


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_metric_names():
    """Metric names of two hosts with ping and load metrics."""
    return [
        "web1.ping.rta",
        "web1.ping.pl",
        "web1.load.load1",
        "web1.load.load5",
        "db1.ping.rta",
        "db1.ping.pl",
        "db1.load.load1",
        "db1.disk.root.used",
    ]


@pytest.fixture
def sample_catalog(sample_metric_names):
    """In-memory catalog over the sample metric names."""
    return MetricsCatalog(sample_metric_names, client="graphite-test")


@pytest.fixture
def ping_template():
    """Template with two curves sharing the host macro."""
    return (
        TemplateBuilder()
        .curve("rta", "$host$.ping.rta", function="alias($metric$, 'RTA $host$')")
        .curve("pl", "$host$.ping.pl")
        .param("title", "Ping $host$")
        .param("yUnitSystem", "si")
        .build()
    )


@pytest.fixture
def sample_template_data():
    """Contents of a template definition file."""
    return {
        "templates": {
            "ping": {
                "description": "Round trip time and packet loss",
                "curves": {
                    "rta": {"pattern": "$host$.ping.rta", "function": "alias($metric$, 'RTA')"},
                    "pl": {"pattern": "$host$.ping.pl"},
                },
                "params": {"title": "Ping $host$"},
            },
            "load": {
                "curves": {
                    "load": {"pattern": "$host$.load.$period$"},
                },
            },
        }
    }


@pytest.fixture
def template_file(temp_dir, sample_template_data):
    """Template definitions written to a YAML file."""
    path = temp_dir / "templates" / "base.yaml"
    path.parent.mkdir()
    with open(path, "w") as f:
        yaml.safe_dump(sample_template_data, f, sort_keys=False)
    return path


@pytest.fixture
def metrics_file(temp_dir, sample_metric_names):
    """Sample metric names written to a JSON file."""
    path = temp_dir / "metrics.json"
    path.write_text(json.dumps({"metrics": sample_metric_names}))
    return path
