"""Command line interface for metric-charts."""
