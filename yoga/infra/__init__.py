"""
Infrastructure package.

Logging configuration shared by every component.
"""

from yoga.infra.logging_cfg import JsonFormatter, build_logger, log_event

__all__ = [
    "JsonFormatter",
    "build_logger",
    "log_event",
]
