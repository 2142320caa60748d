"""
Monitoring package.

Prometheus metrics for the reshape engine.
"""

from yoga.monitoring.metrics_rich import RichMetrics

__all__ = ["RichMetrics"]
