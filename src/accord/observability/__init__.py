"""
Observability for Accord.

Provides structured logging for assessment runs.
"""

from accord.observability.logging import (
    AccordLogger,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "AccordLogger",
    "HumanReadableFormatter",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
]
