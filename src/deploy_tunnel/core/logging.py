"""
Logging helpers shared by the deploy-tunnel controller and its adapters.

Every record is written to standard error as ``timestamp | level | logger |
message`` followed by ``key=value`` pairs taken from the record's extras, with
the bridge call context (provider, verb, exit code, error code) first.
Adapters import the same helpers, so standard output stays reserved for their
response envelope.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from copy import copy
from logging import Logger, LoggerAdapter
from typing import Any, Iterator, Mapping, MutableMapping, Optional, Tuple

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "WARNING"
LEVEL_ENVVAR = "DEPLOY_TUNNEL_LOG_LEVEL"
COLOR_ENVVAR = "DEPLOY_TUNNEL_LOG_COLOR"

# Extras printed first, in this order; anything else follows alphabetically.
BRIDGE_FIELDS: Tuple[str, ...] = ("provider", "verb", "status", "duration", "exit_code", "code", "recoverable", "attempt", "status_code")

_COLORS = {logging.DEBUG: "36", logging.INFO: "32", logging.WARNING: "33", logging.ERROR: "31", logging.CRITICAL: "95"}

# Attributes every LogRecord carries; whatever else is on a record came from ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

_configured = False


def _resolve_level(level: Optional[int | str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName((level or os.getenv(LEVEL_ENVVAR) or DEFAULT_LEVEL).upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def _wants_color(stream: Any) -> bool:
    preference = (os.getenv(COLOR_ENVVAR) or "").strip().lower()
    if preference in {"1", "true", "yes", "on"}:
        return True
    if preference in {"0", "false", "no", "off"}:
        return False
    return bool(getattr(stream, "isatty", lambda: False)())


def _extras(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    pending = {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS and not key.startswith("_") and value is not None}
    for key in BRIDGE_FIELDS:
        if key in pending:
            yield key, pending.pop(key)
    yield from sorted(pending.items())


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4g}"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Append ``key=value`` extras to the standard line, optionally colouring the level."""

    def __init__(self, *, use_color: bool = False) -> None:
        super().__init__(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        shown = record
        if self.use_color and record.levelno in _COLORS:
            shown = copy(record)
            shown.levelname = f"\033[{_COLORS[record.levelno]}m{record.levelname}\033[0m"
        line = super().format(shown)
        pairs = " ".join(f"{key}={_render(value)}" for key, value in _extras(record))
        return f"{line} | {pairs}" if pairs else line


def configure_logging(level: Optional[int | str] = None, *, force: bool = False) -> None:
    """
    Install the stderr handler on the root logger once.

    Parameters
    ----------
    level:
        Level override. Falls back to ``DEPLOY_TUNNEL_LOG_LEVEL`` or ``WARNING``.
    force:
        Replace the handler even if logging was configured before.
    """

    global _configured
    if _configured and not force:
        return
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(StructuredLogFormatter(use_color=_wants_color(handler.stream)))
    logging.basicConfig(level=_resolve_level(level), handlers=[handler], force=force)
    _configured = True


class _BoundLogger(LoggerAdapter):
    """Merge per-call ``extra`` into the bound context instead of replacing it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        merged = dict(self.extra or {})
        merged.update({key: value for key, value in (kwargs.get("extra") or {}).items() if value is not None})
        if merged:
            kwargs["extra"] = merged
        return msg, kwargs


def get_logger(name: str, *, extra: Optional[Mapping[str, object]] = None) -> LoggerAdapter:
    """
    Return a logger bound to ``extra``, e.g. the provider an adapter serves.

    ``None`` values in ``extra`` are dropped.
    """

    configure_logging()
    bound = {key: value for key, value in (extra or {}).items() if value is not None}
    return _BoundLogger(logging.getLogger(name), bound)


def log_progress(
    logger: LoggerAdapter | Logger,
    message: str,
    *,
    provider: Optional[str] = None,
    verb: Optional[str] = None,
    status: Optional[str] = None,
    level: int = logging.INFO,
    extra: Optional[Mapping[str, object]] = None,
) -> None:
    """Log one step of a multi-call workflow such as ``dt auth login``."""

    payload: MutableMapping[str, object] = dict(extra or {})
    for key, value in (("provider", provider), ("verb", verb), ("status", status)):
        if value:
            payload[key] = value
    logger.log(level, message, extra=payload or None)


__all__ = ["StructuredLogFormatter", "configure_logging", "get_logger", "log_progress"]
