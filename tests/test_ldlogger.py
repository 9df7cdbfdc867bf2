import pytest

from flagproviders.launchdarkly.ldlogger import NoOpLogger


@pytest.mark.parametrize("method", ["debug", "info", "error", "warn"])
def test_noop_methods_return_none(method):
    logger = NoOpLogger()
    assert getattr(logger, method)("mapping %q context kind", "org") is None


@pytest.mark.parametrize("method", ["debug", "info", "error", "warn"])
def test_noop_does_not_format_arguments(method):
    logger = NoOpLogger()
    # A mismatched format would fail if the message were formatted.
    assert getattr(logger, method)("%d %d", "not-a-number") is None


def test_noop_logger_keeps_no_state():
    logger = NoOpLogger()
    logger.debug("a")
    logger.info("b", 1)
    logger.error("c", 2, 3)
    logger.warn("d")
    assert vars(logger) == {}