import logging
from logging.handlers import RotatingFileHandler

import pytest

from b24_bridge import logging_setup
from b24_bridge.infrastructure import log_utils

LOGGER_TAG = "TEST"


@pytest.fixture
def temp_logger(tmp_path):
    log_path = tmp_path / "b24_bridge.log"
    logging_setup.configure_logging(log_path=log_path, force=True)
    adapter = logging_setup.get_logger(LOGGER_TAG)
    base_logger = logging.getLogger(logging_setup.LOGGER_NAME)
    try:
        yield adapter, base_logger, log_path
    finally:
        logging_setup.reset_logging()


def _flush(logger):
    for handler in logger.handlers:
        handler.flush()


def test_rotating_handler_defaults(temp_logger):
    _, base_logger, log_path = temp_logger
    handlers = [h for h in base_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert handlers, "Expected a rotating handler"
    assert handlers[0].maxBytes == logging_setup.DEFAULT_MAX_BYTES
    assert handlers[0].backupCount == logging_setup.DEFAULT_BACKUP_COUNT
    assert handlers[0].baseFilename == str(log_path)


def test_tagged_records_include_tag(temp_logger):
    adapter, base_logger, log_path = temp_logger

    adapter.info("hello")
    _flush(base_logger)

    assert "[INFO] [TEST] hello" in log_path.read_text(encoding="utf-8")


def test_log_message_infers_tag_from_module(temp_logger):
    _, base_logger, log_path = temp_logger

    log_utils.log_message("from rpc", "WARN", tag=logging_setup.get_tag_for_module("b24_bridge.infrastructure.rpc_client"))
    _flush(base_logger)

    assert "[WARNING] [RPC] from rpc" in log_path.read_text(encoding="utf-8")


def test_unknown_module_gets_general_tag():
    assert logging_setup.get_tag_for_module("something.else") == "GEN"


def test_mask_token_never_returns_full_value():
    assert log_utils.mask_token("abcdefghij") == "abcde..."
    assert log_utils.mask_token(None) == "<none>"


def test_unknown_level_falls_back_to_info(tmp_path, monkeypatch):
    monkeypatch.setenv("B24_LOG_LEVEL", "chatty")
    try:
        logger = logging_setup.configure_logging(log_path=tmp_path / "b24_bridge.log", force=True)
        assert logger.level == logging.INFO
    finally:
        logging_setup.reset_logging()
