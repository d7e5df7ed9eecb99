import logging

import pytest

from qr_tracking.logging_utils import (
    CORE_LOGGER,
    add_file_handler,
    parse_level,
    remove_file_handler,
    setup_logger,
)


@pytest.fixture
def clean_loggers():
    names = ["qr_tracking.logtest", CORE_LOGGER]
    yield
    for name in names:
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            lg.removeHandler(h)
            h.close()
        lg.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "value, expected",
    [
        (logging.WARNING, logging.WARNING),
        ("debug", logging.DEBUG),
        (" INFO ", logging.INFO),
        ("15", 15),
    ],
)
def test_parse_level(value, expected):
    assert parse_level(value) == expected


def test_parse_level_rejects_unknown_names():
    with pytest.raises(ValueError):
        parse_level("chatty")


def test_setup_logger_sets_both_levels(clean_loggers):
    logger = setup_logger("logtest", "debug")

    assert logger.name == "qr_tracking.logtest"
    assert logger.level == logging.DEBUG
    assert logging.getLogger(CORE_LOGGER).level == logging.DEBUG
    assert len(logger.handlers) == 1

    setup_logger("logtest", "info")
    assert len(logger.handlers) == 1


def test_session_log_collects_core_messages(clean_loggers, tmp_path):
    logger = setup_logger("logtest", logging.DEBUG)
    log_path = tmp_path / "session.log"

    handler = add_file_handler(logger, "logtest", str(log_path))
    logger.info("session started")
    logging.getLogger("planar_pose.registry").debug("no pose for qr-1 this frame")
    remove_file_handler(logger, handler)
    logger.info("after close")

    lines = log_path.read_text().splitlines()
    assert len(lines) == 2
    assert "[logtest] qr_tracking.logtest: session started" in lines[0]
    assert "DEBUG [logtest] planar_pose.registry: no pose for qr-1 this frame" in lines[1]
    assert handler not in logger.handlers
    assert handler not in logging.getLogger(CORE_LOGGER).handlers
