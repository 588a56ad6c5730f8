from __future__ import annotations

import logging
from io import StringIO

import pytest

import bulk_import.logging.init as log_init
from bulk_import.logging.init import LabeledFormatter, SUMMARY_LEVEL, get_logger, set_debug, setup_logging


@pytest.fixture(autouse=True)
def _fresh_logger():
    log_init.reset_logging()
    yield
    log_init.reset_logging()


def test_setup_logging_creates_single_stdout_handler():
    logger = setup_logging()
    assert logger.name == "bulk_import"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1
    assert get_logger() is first


def test_labeled_prefixes():
    captured = StringIO()
    logger = logging.getLogger("test_bulk_import_labels")
    logger.setLevel(logging.INFO)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    handler = logging.StreamHandler(captured)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("loaded 3 rows")
    logger.warning("row 4: email required")
    logger.error("config: missing")
    logger.log(SUMMARY_LEVEL, "rows=3")

    assert captured.getvalue().splitlines() == [
        "INFO loaded 3 rows",
        "WARN row 4: email required",
        "ERROR config: missing",
        "SUMMARY rows=3",
    ]


def test_module_loggers_propagate_into_package_logger():
    logger = setup_logging()
    captured = StringIO()
    logger.handlers[0].setStream(captured)
    logging.getLogger("bulk_import.services.reconciler").warning("unmatched failure")
    assert "WARN unmatched failure" in captured.getvalue()


def test_set_debug_toggles_levels():
    logger = setup_logging()
    set_debug(True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    set_debug(False)
    assert logger.level == logging.INFO
