import traceback

import pytest

from xraystrategy.exception import (
    DefaultFormattingStrategy,
    ExceptionInfo,
    MultiError,
    Stack,
    XRayError,
    convert_stack,
    new_exception_id,
)


def test_multi_error_string_format():
    err = MultiError([ValueError("error one"), ValueError("error two")])
    assert str(err) == "2 errors occurred:\n* error one\n* error two\n"


@pytest.mark.parametrize("count", [-1, 33])
def test_invalid_frame_count(count):
    with pytest.raises(ValueError, match="frameCount must be a non-negative integer"):
        DefaultFormattingStrategy(count)


def test_valid_frame_count():
    assert DefaultFormattingStrategy(10).frame_count == 10


def test_default_frame_count():
    assert DefaultFormattingStrategy().frame_count == 32


def test_error():
    err = DefaultFormattingStrategy().error("Test")
    stack = convert_stack(err.stack_trace())
    assert str(err) == "Test"
    assert err.type == "error"
    assert stack[0].label == "test_error"


def test_errorf():
    err = DefaultFormattingStrategy().errorf("Test")
    stack = convert_stack(err.stack_trace())
    assert str(err) == "Test"
    assert err.type == "error"
    assert stack[0].label == "test_errorf"


def test_errorf_formats_arguments():
    err = DefaultFormattingStrategy().errorf("%s-%d", "a", 1)
    assert str(err) == "a-1"


def test_panic():
    strategy = DefaultFormattingStrategy()

    def recover_site():
        try:
            raise RuntimeError("Test")
        except RuntimeError as exc:
            return strategy.panic(str(exc))

    err = recover_site()
    stack = convert_stack(err.stack_trace())
    assert str(err) == "Test"
    assert err.type == "panic"
    assert stack[0].label == "recover_site"
    assert stack[1].label == "test_panic"


def test_panicf():
    strategy = DefaultFormattingStrategy()

    def recover_site():
        try:
            raise RuntimeError("Test")
        except RuntimeError as exc:
            return strategy.panicf("%s", exc)

    err = recover_site()
    stack = convert_stack(err.stack_trace())
    assert str(err) == "Test"
    assert err.type == "panic"
    assert stack[0].label == "recover_site"
    assert stack[1].label == "test_panicf"


def test_frame_count_limits_stack():
    err = DefaultFormattingStrategy(2).error("x")
    assert len(err.stack_trace()) == 2


def test_exception_from_error():
    info = DefaultFormattingStrategy(0).exception_from_error(ValueError("new error"))
    assert len(info.id) == 16
    int(info.id, 16)
    assert info.message == "new error"
    assert info.type == "ValueError"
    assert info.remote is False
    assert info.stack == []


def test_exception_from_xray_error_keeps_type():
    err = XRayError("boom", "panic")
    info = DefaultFormattingStrategy().exception_from_error(err)
    assert info.type == "panic"
    assert info.message == "boom"


def test_exception_from_error_with_request_id_is_remote():
    class ServiceError(Exception):
        request_id = "req-1"

    info = DefaultFormattingStrategy().exception_from_error(ServiceError("x"))
    assert info.remote is True
    assert info.type.endswith(".ServiceError")


def test_exception_from_raised_error_uses_traceback():
    def raise_site():
        raise KeyError("k")

    try:
        raise_site()
    except KeyError as exc:
        info = DefaultFormattingStrategy().exception_from_error(exc)
    assert info.stack[0].label == "raise_site"
    assert info.stack[-1].label == "test_exception_from_raised_error_uses_traceback"


def test_new_exception_id_is_random_hex():
    first, second = new_exception_id(), new_exception_id()
    assert len(first) == 16
    assert set(first) <= set("0123456789abcdef")
    assert first != second or len(second) == 16


def test_convert_stack_keeps_unknown_path():
    frame = traceback.FrameSummary("pkg/mod.py", 7, "fn", lookup_line=False)
    assert convert_stack([frame]) == [Stack(path="pkg/mod.py", line=7, label="fn")]


def test_stack_to_dict_omits_empty():
    assert Stack("a.py", 0, "").to_dict() == {"path": "a.py"}


def test_exception_info_to_dict():
    info = ExceptionInfo(
        id="abc", type="error", message="m", stack=[Stack("a.py", 3, "f")]
    )
    assert info.to_dict() == {
        "id": "abc",
        "type": "error",
        "message": "m",
        "stack": [{"path": "a.py", "line": 3, "label": "f"}],
    }