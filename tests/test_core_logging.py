from __future__ import annotations

import logging

import pytest

from deploy_tunnel.core.logging import StructuredLogFormatter, configure_logging, get_logger, log_progress


@pytest.fixture
def reset_logging_handlers():
    root = logging.getLogger()
    existing_handlers = list(root.handlers)
    existing_level = root.level
    yield
    root.handlers = existing_handlers
    root.setLevel(existing_level)


class _ListHandler(logging.Handler):
    def __init__(self, formatter: logging.Formatter):
        super().__init__()
        self.records: list[logging.LogRecord] = []
        self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        self.records.append(record)


def _collect():
    root = logging.getLogger()
    collector = _ListHandler(root.handlers[0].formatter)
    root.addHandler(collector)
    return root, collector


def test_structured_formatter_orders_bridge_extras_first():
    formatter = StructuredLogFormatter(use_color=False)
    record = logging.LogRecord(
        name="deploy_tunnel.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Adapter command succeeded",
        args=(),
        exc_info=None,
    )
    record.zeta = "last"
    record.verb = "fetch:config"
    record.provider = "vercel"
    record.failed = ["API_URL", "DEBUG"]

    formatted = formatter.format(record)

    assert "Adapter command succeeded" in formatted
    assert formatted.index("provider=vercel") < formatted.index("verb=fetch:config") < formatted.index("zeta=last")
    assert 'failed=["API_URL", "DEBUG"]' in formatted


def test_configure_logging_installs_structured_formatter(reset_logging_handlers):
    configure_logging("DEBUG", force=True)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert isinstance(root.handlers[0].formatter, StructuredLogFormatter)


def test_get_logger_merges_bound_and_call_extras(reset_logging_handlers):
    configure_logging("INFO", force=True)
    logger = get_logger("test.bound", extra={"provider": "vercel", "unused": None})
    root, collector = _collect()
    try:
        logger.info("Dispatching", extra={"verb": "capabilities"})
    finally:
        root.removeHandler(collector)

    record = collector.records[0]
    assert getattr(record, "provider") == "vercel"
    assert getattr(record, "verb") == "capabilities"
    assert not hasattr(record, "unused")


def test_log_progress_populates_record_extras(reset_logging_handlers):
    configure_logging("INFO", force=True)
    logger = get_logger("test.progress")
    root, collector = _collect()
    try:
        log_progress(logger, "Verifying credential", provider="vercel", verb="fetch:config", status="verifying", extra={"attempt": 1})
    finally:
        root.removeHandler(collector)

    record = collector.records[0]
    assert getattr(record, "provider") == "vercel"
    assert getattr(record, "status") == "verifying"
    assert getattr(record, "attempt") == 1
    formatted = collector.format(record)
    assert "verb=fetch:config" in formatted


def test_log_level_from_environment(reset_logging_handlers, monkeypatch):
    monkeypatch.setenv("DEPLOY_TUNNEL_LOG_LEVEL", "ERROR")

    configure_logging(force=True)

    assert logging.getLogger().level == logging.ERROR


def test_colour_toggle_from_environment(reset_logging_handlers, monkeypatch):
    monkeypatch.setenv("DEPLOY_TUNNEL_LOG_COLOR", "on")

    configure_logging("INFO", force=True)

    formatter = logging.getLogger().handlers[0].formatter
    assert formatter.use_color is True
    record = logging.LogRecord(name="x", level=logging.ERROR, pathname=__file__, lineno=1, msg="boom", args=(), exc_info=None)
    assert "\033[31mERROR\033[0m" in formatter.format(record)
    assert record.levelname == "ERROR"
