import io
import logging

import pytest

from licensa.core.log import (
    PACKAGE_LOGGER_NAME,
    configure_logging,
    get_logger,
    resolve_level,
    temp_level,
)


@pytest.fixture
def scratch_logger():
    name = "licensa.test.scratch"
    logger = logging.getLogger(name)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_package_logger_has_null_handler():
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


def test_resolve_level_accepts_names_and_numbers():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level(" WARNING ") == logging.WARNING
    assert resolve_level("15") == 15
    assert resolve_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        resolve_level("chatty")


def test_configure_logging_keeps_a_single_handler(scratch_logger):
    stream = io.StringIO()
    configure_logging(level="DEBUG", stream=stream, logger_name=scratch_logger.name)
    configure_logging(level="DEBUG", stream=stream, logger_name=scratch_logger.name)

    assert scratch_logger.level == logging.DEBUG
    assert len(scratch_logger.handlers) == 1
    get_logger(scratch_logger.name).info("hello %s", "world")
    assert "INFO licensa.test.scratch: hello world" in stream.getvalue()


def test_configure_logging_retargets_stream(scratch_logger):
    first, second = io.StringIO(), io.StringIO()
    configure_logging(stream=first, logger_name=scratch_logger.name)
    configure_logging(stream=second, fmt="%(message)s", logger_name=scratch_logger.name)

    scratch_logger.warning("moved")
    assert first.getvalue() == ""
    assert second.getvalue() == "moved\n"


def test_configure_logging_leaves_foreign_handlers(scratch_logger):
    host = logging.StreamHandler(io.StringIO())
    scratch_logger.addHandler(host)
    configure_logging(stream=io.StringIO(), logger_name=scratch_logger.name)

    assert host in scratch_logger.handlers
    assert len(scratch_logger.handlers) == 2


def test_temp_level_changes_and_restores(scratch_logger):
    scratch_logger.setLevel(logging.WARNING)

    with temp_level("debug", name=scratch_logger.name):
        assert scratch_logger.level == logging.DEBUG

    assert scratch_logger.level == logging.WARNING
