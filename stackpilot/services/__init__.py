"""
stackpilot Services

Collaborators used by the runner: metrics collection, notifications and the
live group inspector.
"""

from .collector import LogCollector, MetricsCollector, NullCollector  # noqa: F401
from .inspector import BackendInspector, Inspector  # noqa: F401
from .notifier import LogNotifier, Notifier  # noqa: F401

__all__ = [
    "MetricsCollector",
    "NullCollector",
    "LogCollector",
    "Notifier",
    "LogNotifier",
    "Inspector",
    "BackendInspector",
]
