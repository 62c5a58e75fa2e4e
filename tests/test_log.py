import logging

import jax.numpy as jnp
import pytest

from mspeirv.utils import CustomLogFormatter, log_decorator, use_logging


@pytest.fixture
def mspeirv_logger():
    logger = logging.getLogger("mspeirv")
    level = logger.level
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)


def test_use_logging_console(mspeirv_logger):
    use_logging(level="warn", output="console")
    assert mspeirv_logger.level == logging.WARN
    assert len(mspeirv_logger.handlers) == 1
    assert isinstance(mspeirv_logger.handlers[0].formatter, CustomLogFormatter)
    # calling again replaces rather than duplicates handlers
    use_logging(level="debug", output="console")
    assert len(mspeirv_logger.handlers) == 1
    assert mspeirv_logger.level == logging.DEBUG


def test_use_logging_none(mspeirv_logger):
    use_logging(level="none")
    assert mspeirv_logger.level > logging.CRITICAL


def test_use_logging_file(mspeirv_logger, tmp_path):
    log_path = tmp_path / "logs"
    use_logging(level="info", output="both", log_path=str(log_path))
    assert len(mspeirv_logger.handlers) == 2
    mspeirv_logger.info("written to file")
    for handler in mspeirv_logger.handlers:
        handler.flush()
    log_files = list(log_path.glob("*.log"))
    assert len(log_files) == 1
    assert "written to file" in log_files[0].read_text()


def test_use_logging_invalid_choices(mspeirv_logger):
    with pytest.raises(ValueError):
        use_logging(level="verbose")
    with pytest.raises(ValueError):
        use_logging(output="printer")


def test_log_decorator(caplog):
    @log_decorator()
    def total(state, scale=1.0):
        return float(jnp.sum(state)) * scale

    with caplog.at_level(logging.DEBUG, logger="mspeirv"):
        assert total(jnp.ones(4), scale=2.0) == 8.0
    assert "shape=(4,)" in caplog.text
    assert "scale=float" in caplog.text
    assert "Execution Time" in caplog.text
    # records name the decorated function rather than the wrapper
    records = [r for r in caplog.records if r.name == "mspeirv"]
    assert len(records) == 2
    assert all(r.func_name_override == "total" for r in records)


def test_log_decorator_reraises(caplog):
    @log_decorator()
    def fail():
        raise ValueError("bad state")

    with caplog.at_level(logging.ERROR, logger="mspeirv"):
        with pytest.raises(ValueError):
            fail()
    assert "Exception: bad state" in caplog.text


def test_custom_log_formatter():
    formatter = CustomLogFormatter("%(filename)s - %(funcName)s: %(message)s")
    record = logging.LogRecord(
        "mspeirv", logging.INFO, "wrapper.py", 1, "hello", None, None
    )
    record.func_name_override = "simulate"
    record.file_name_override = "odes.py"
    assert formatter.format(record) == "odes.py - simulate: hello"
