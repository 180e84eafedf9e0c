"""
Metrics Agent Package.

Samples runtime metrics of the current process and reports
them to the collector server.
"""

from .collector import RuntimeMetrics
from .reporter import MetricsReporter
from .runner import Agent

__all__ = [
    "Agent",
    "MetricsReporter",
    "RuntimeMetrics",
]
