"""
Brief: Tests for ubwrap.errors status classification and messages.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from ubwrap.errors import (
    ContractError,
    EngineError,
    EngineOperationError,
    EngineOptionError,
    ErrorCode,
    OptionLookup,
    ResolutionError,
    classify_status,
    format_message,
    is_unknown_option,
    strerror,
)


def test_strerror_known_and_unknown():
    assert strerror(ErrorCode.SYNTAX) == "syntax error"
    assert strerror(-9) == "error reading from file"
    assert strerror(0) == "no error"
    assert strerror(-99) == "unknown error"


@pytest.mark.parametrize(
    "status,operation,cls",
    [
        (ErrorCode.SYNTAX, "get_option", EngineOptionError),
        (ErrorCode.SYNTAX, "set_option", EngineOptionError),
        (ErrorCode.AFTERFINAL, "set_option", EngineOperationError),
        (ErrorCode.SYNTAX, "add_zone", EngineOperationError),
        (ErrorCode.READFILE, "set_hosts", EngineOperationError),
        (ErrorCode.SERVFAIL, "resolve", ResolutionError),
        (ErrorCode.SYNTAX, "resolve", ResolutionError),
        (-42, "resolve", ResolutionError),
    ],
)
def test_classify_status(status, operation, cls):
    err = classify_status(status, operation, engine_name="forwarder")
    assert type(err) is cls
    assert isinstance(err, EngineError)
    assert err.status == int(status)
    assert err.operation == operation


def test_classify_status_message_form():
    err = classify_status(ErrorCode.READFILE, "set_hosts", engine_name="libunbound")
    assert str(err) == "libunbound: error reading from file (-9)"
    assert err.code is ErrorCode.READFILE

    custom = classify_status(-3, "add_data", engine_name="fake", text="bad record")
    assert str(custom) == "fake: bad record (-3)"

    unknown = classify_status(-77, "add_data")
    assert unknown.code is None


def test_format_message_caps_long_text():
    assert format_message("e", -3, "x" * 300) == "e: unknown error (-3)"


def test_is_unknown_option_only_for_get_option_syntax():
    assert is_unknown_option(ErrorCode.SYNTAX)
    assert not is_unknown_option(ErrorCode.SERVFAIL)
    assert not is_unknown_option(ErrorCode.SYNTAX, "set_option")


def test_option_lookup_unknown():
    lookup = OptionLookup.unknown("no-such:")
    assert lookup == OptionLookup(key="no-such:", found=False, raw=None)


def test_contract_error_is_type_and_value_error():
    assert issubclass(ContractError, TypeError)
    assert issubclass(ContractError, ValueError)
