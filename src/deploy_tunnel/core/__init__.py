"""
Core infrastructure shared by the controller, the CLI and bundled adapters.

This package depends on nothing but the standard library. It exposes the logging helpers every other module builds on.
"""

from .logging import StructuredLogFormatter, configure_logging, get_logger, log_progress

__all__ = [
    "StructuredLogFormatter",
    "configure_logging",
    "get_logger",
    "log_progress",
]
