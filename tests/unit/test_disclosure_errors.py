"""
Unit tests for the error taxonomy.
"""
import json

from disclosure.errors import (
    ConfigurationError,
    DisclosureError,
    ErrorCode,
    ParseError,
    RangeInvariantError,
    SessionError,
    handle_error,
)


def test_parse_error_carries_position():
    err = ParseError(ErrorCode.PARSE_MALFORMED_JSON, "expected a JSON value", rule="json-value", position=42, line=5, column=10)
    assert str(err).startswith("[PARSE_003] expected a JSON value")
    assert err.to_dict()["details"] == {"rule": "json-value", "position": 42, "line": 5, "column": 10}
    assert err.category == "parse"


def test_round_trip_keeps_subclass():
    original = ParseError(ErrorCode.PARSE_MALFORMED_RESPONSE, "bad", rule="header", position=3, line=1, column=4)
    restored = DisclosureError.from_dict(json.loads(original.to_json()))
    assert isinstance(restored, ParseError)
    assert (restored.rule, restored.position, restored.line, restored.column) == ("header", 3, 1, 4)

    restored = DisclosureError.from_dict(RangeInvariantError(ErrorCode.RANGE_OUT_OF_BOUNDS, "x").to_dict())
    assert isinstance(restored, RangeInvariantError)
    assert restored.category == "resolve"

    restored = DisclosureError.from_dict(ConfigurationError(ErrorCode.IPC_MALFORMED_MESSAGE, "x").to_dict())
    assert isinstance(restored, ConfigurationError)


def test_handle_error_classifies_foreign_exceptions():
    assert handle_error(ConnectionResetError("reset")).code == ErrorCode.SESSION_CONNECT_FAILED
    assert handle_error(TimeoutError()).code == ErrorCode.SESSION_TIMEOUT

    err = handle_error(KeyError("k"), context="while building events")
    assert err.code == ErrorCode.SYSTEM_INTERNAL_ERROR
    assert err.message.startswith("while building events: ")
    assert err.details["original_type"] == "KeyError"


def test_handle_error_passes_through_disclosure_errors():
    err = SessionError(ErrorCode.SESSION_HANDSHAKE_FAILED, "x")
    assert handle_error(err) is err
