import logging

import pytest

from xraystrategy.ctxmissing import (
    ContextMissingError,
    IgnoreErrorStrategy,
    LogErrorStrategy,
    RuntimeErrorStrategy,
    strategy_for,
)


def test_runtime_error_strategy_raises_with_value():
    strategy = RuntimeErrorStrategy()
    with pytest.raises(ContextMissingError) as info:
        strategy.context_missing("TestRuntimeError")
    assert info.value.value == "TestRuntimeError"
    assert str(info.value) == "TestRuntimeError"


def test_log_error_strategy_logs_message(caplog):
    strategy = LogErrorStrategy()
    with caplog.at_level(logging.DEBUG, logger="xraystrategy"):
        strategy.context_missing("TestLogError")
    assert "Suppressing AWS X-Ray context missing panic: TestLogError" in caplog.text
    assert caplog.records[0].levelno == logging.ERROR


def test_ignore_error_strategy_does_nothing(caplog):
    strategy = IgnoreErrorStrategy()
    with caplog.at_level(logging.DEBUG, logger="xraystrategy"):
        result = strategy.context_missing("TestIgnoreError")
    assert result is None
    assert caplog.records == []


@pytest.mark.parametrize(
    "name, expected",
    [
        ("RUNTIME_ERROR", RuntimeErrorStrategy),
        ("LOG_ERROR", LogErrorStrategy),
        ("IGNORE_ERROR", IgnoreErrorStrategy),
    ],
)
def test_strategy_for_known_names(name, expected):
    assert type(strategy_for(name)) is expected


def test_strategy_for_unknown_name():
    with pytest.raises(ValueError, match="unknown context missing strategy"):
        strategy_for("SOMETHING_ELSE")