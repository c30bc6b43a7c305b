"""
Logging setup and assessment event logging for Accord.

Module code logs through logging.getLogger(__name__). Assessment lifecycle
events go through AccordLogger, which attaches an event_type and the run's
context fields to each record so that the JSON formatter can emit them as
top-level keys.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# Attributes present on every LogRecord; anything else came in via extra=
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

_LOG_KWARGS = ("exc_info", "stack_info", "stacklevel", "extra")

_LEVEL_COLORS = {
    logging.DEBUG: "36",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "35",
}


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the extra fields attached to a record."""
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line, for log shipping to Azure Monitor or similar.

    Every line has timestamp, level, logger and message; extra fields on the
    record and the formatter's static fields are merged in at the top level.
    """

    def __init__(
        self,
        static_fields: dict[str, Any] | None = None,
        include_location: bool = False,
    ):
        super().__init__()
        self.static_fields = dict(static_fields or {})
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_location:
            entry["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(record_fields(record))
        entry.update(self.static_fields)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Single-line text output for terminals.

    Event fields are appended as key=value pairs after the message.
    """

    def __init__(
        self,
        use_colors: bool = True,
        include_timestamp: bool = True,
        show_fields: bool = True,
    ):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp
        self.show_fields = show_fields

    def _level(self, record: logging.LogRecord) -> str:
        name = f"{record.levelname:<8}"
        color = _LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color:
            return f"\033[{color}m{name}\033[0m"
        return name

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self._level(record)} {record.name}: {record.getMessage()}"
        if self.include_timestamp:
            created = datetime.fromtimestamp(record.created, timezone.utc)
            line = f"{created:%Y-%m-%d %H:%M:%S} {line}"

        if self.show_fields:
            fields = record_fields(record)
            if fields:
                line += " " + " ".join(f"{k}={v}" for k, v in sorted(fields.items()))

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class AccordLogger(logging.LoggerAdapter):
    """
    Logger adapter for assessment events.

    Keyword arguments passed to the logging methods (other than the standard
    exc_info/stack_info/stacklevel/extra) become record fields, merged over
    the adapter's persistent context.
    """

    def __init__(self, name: str, level: int | None = None):
        super().__init__(logging.getLogger(name), {})
        if level is not None:
            self.logger.setLevel(level)

    def set_context(self, **fields: Any) -> None:
        """Attach fields to every subsequent record."""
        self.extra.update(fields)

    def clear_context(self) -> None:
        self.extra.clear()

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOG_KWARGS}
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {}), **fields}
        return msg, kwargs

    def catalog_loaded(self, version: str, source: str, control_count: int) -> None:
        self.info(
            f"Catalog {version} loaded from {source}",
            event_type="catalog.loaded",
            catalog_version=version,
            source=source,
            control_count=control_count,
        )

    def assessment_started(self, assessment_id: str, scope: str, phases: list[str]) -> None:
        self.info(
            f"Assessment started for {scope}",
            event_type="assessment.started",
            assessment_id=assessment_id,
            scope=scope,
            phases=phases,
        )

    def phase_completed(
        self,
        assessment_id: str,
        domain: str,
        score: float,
        finding_count: int,
        duration_seconds: float,
    ) -> None:
        self.info(
            f"Phase {domain} completed with score {score:.1f}",
            event_type="phase.completed",
            assessment_id=assessment_id,
            domain=domain,
            score=score,
            finding_count=finding_count,
            duration_seconds=duration_seconds,
        )

    def phase_failed(self, assessment_id: str, domain: str, error: str) -> None:
        """Degraded phases are logged at WARNING; the run continues."""
        self.warning(
            f"Phase {domain} not available: {error}",
            event_type="phase.failed",
            assessment_id=assessment_id,
            domain=domain,
            error=error,
        )

    def assessment_completed(
        self,
        assessment_id: str,
        status: str,
        overall_score: float,
        finding_count: int,
        duration_seconds: float,
    ) -> None:
        self.info(
            f"Assessment {status} with overall score {overall_score:.1f}",
            event_type="assessment.completed",
            assessment_id=assessment_id,
            status=status,
            overall_score=overall_score,
            finding_count=finding_count,
            duration_seconds=duration_seconds,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure the "accord" logger.

    Replaces any handlers installed by a previous call.

    Args:
        level: Log level name; unknown names fall back to INFO
        format: "human" or "json"
        output: "stderr" or "stdout"
        extra_fields: Static fields added to every JSON line
    """
    accord_logger = logging.getLogger("accord")
    accord_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout if output == "stdout" else sys.stderr)
    if format == "json":
        handler.setFormatter(StructuredFormatter(static_fields=extra_fields))
    else:
        handler.setFormatter(HumanReadableFormatter())

    for existing in list(accord_logger.handlers):
        accord_logger.removeHandler(existing)
    accord_logger.addHandler(handler)


def get_logger(name: str) -> AccordLogger:
    """Return an AccordLogger under the "accord." namespace."""
    return AccordLogger(f"accord.{name}")


_env_level = os.getenv("ACCORD_LOG_LEVEL")
_env_format = os.getenv("ACCORD_LOG_FORMAT")
if _env_level or _env_format:
    configure_logging(level=_env_level or "INFO", format=_env_format or "human")
