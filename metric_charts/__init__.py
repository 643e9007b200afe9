"""
Metric Charts

Finds every consistent combination of metrics that can be drawn together
on one chart, based on chart templates whose curves are metric-name
patterns with macros.

Usage:
    metric-charts templates --templates ./templates
    metric-charts charts ping --metrics metrics.txt --filter host=web1
"""

__version__ = "0.1.0"
