"""Tests for logging setup and structured metadata."""
import json
import logging
from datetime import date

import pytest

from storefront_qa.log import MetaFormatter, configure_logging, meta


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_meta_formatter_appends_json():
    formatter = MetaFormatter("%(levelname)s %(message)s%(meta_suffix)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "clicked %s", ("button",), None)
    record.meta = {"locator": "home.search_icon", "duration_ms": 12}

    line = formatter.format(record)

    assert line.startswith("INFO clicked button ")
    assert json.loads(line[len("INFO clicked button "):]) == {"duration_ms": 12, "locator": "home.search_icon"}


def test_meta_formatter_without_meta():
    formatter = MetaFormatter("%(message)s%(meta_suffix)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "plain", (), None)

    assert formatter.format(record) == "plain"


def test_meta_helper():
    assert meta(action="fill", attempt=2) == {"meta": {"action": "fill", "attempt": 2}}


def test_configure_logging_writes_files(tmp_path, restore_root_logger):
    handlers = configure_logging(tmp_path / "logs", "DEBUG")
    logger = logging.getLogger("storefront_qa.tests")

    logger.info("info line", extra=meta(step="one"))
    logger.error("error line")
    for handler in handlers:
        handler.flush()

    combined = (tmp_path / "logs" / "combined.log").read_text(encoding="utf-8")
    errors = (tmp_path / "logs" / "error.log").read_text(encoding="utf-8")
    daily = tmp_path / "logs" / f"app-{date.today().isoformat()}.log"

    assert "info line" in combined and '{"step": "one"}' in combined
    assert "error line" in errors
    assert "info line" not in errors
    assert daily.exists()


def test_configure_logging_replaces_previous_handlers(tmp_path, restore_root_logger):
    first = configure_logging(tmp_path / "a")
    second = configure_logging(tmp_path / "b")
    root = logging.getLogger()

    assert not any(handler in root.handlers for handler in first)
    assert all(handler in root.handlers for handler in second)
