"""Module errors: structured error taxonomy for the disclosure pipeline."""
#
# PURPOSE:
# Provides a structured error taxonomy with error codes, typed exceptions,
# and consistent conversion into session events.
#
# ERROR CODE FORMAT:
# - CONFIG_XXX: Bad session parameters (URI, headers, addresses)
# - SESSION_XXX: Backend / network failures while running a session
# - PARSE_XXX: Malformed request or response transcripts
# - AST_XXX: Syntax tree did not have the expected shape
# - RESOLVE_XXX: Keypath problems
# - RANGE_XXX: Byte-range invariant violations
# - IPC_XXX: Malformed session messages
# - SYSTEM_XXX: Anything else
#
# Parse, AST, resolve and range errors are never downgraded to warnings:
# a wrong byte range is a disclosure of private data.
#
# USAGE:
#   from disclosure.errors import ParseError, ErrorCode
#
#   raise ParseError(
#       ErrorCode.PARSE_MALFORMED_RESPONSE,
#       "expected ':' after field name",
#       rule="json-field",
#       position=17,
#   )
#

from enum import Enum
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    # Config Errors
    CONFIG_INVALID_URI = "CONFIG_001"
    CONFIG_INVALID_SCHEME = "CONFIG_002"
    CONFIG_MISSING_HOST = "CONFIG_003"
    CONFIG_INVALID_HEADER = "CONFIG_004"
    CONFIG_INVALID_ADDRESS = "CONFIG_005"
    CONFIG_INVALID = "CONFIG_006"

    # Session Errors
    SESSION_CONNECT_FAILED = "SESSION_001"
    SESSION_HANDSHAKE_FAILED = "SESSION_002"
    SESSION_DISCLOSURE_FAILED = "SESSION_003"
    SESSION_UNEXPECTED_STATUS = "SESSION_004"
    SESSION_TIMEOUT = "SESSION_005"

    # Parse Errors
    PARSE_MALFORMED_REQUEST = "PARSE_001"
    PARSE_MALFORMED_RESPONSE = "PARSE_002"
    PARSE_MALFORMED_JSON = "PARSE_003"
    PARSE_INPUT_TOO_LARGE = "PARSE_004"
    PARSE_UNSUPPORTED_FRAMING = "PARSE_005"

    # AST Errors
    AST_SHAPE_MISMATCH = "AST_001"
    AST_AMBIGUOUS_HOST = "AST_002"

    # Resolve Errors
    RESOLVE_INVALID_KEYPATH = "RESOLVE_001"

    # Range Errors
    RANGE_INVERTED_SPAN = "RANGE_001"
    RANGE_OUT_OF_BOUNDS = "RANGE_002"

    # IPC Errors
    IPC_MALFORMED_MESSAGE = "IPC_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class DisclosureError(Exception):
    """
    Base exception class with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "PARSE_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    category = "system"

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with code, category, message and details
        """
        return {
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        import json
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DisclosureError":
        """
        Deserialize error from dictionary.

        The concrete subclass is chosen from the code prefix so a round trip
        keeps the category.
        """
        code = ErrorCode(data["code"])
        error_cls = _CLASS_BY_PREFIX.get(code.name.split("_", 1)[0], DisclosureError)
        details = data.get("details", {})
        err = DisclosureError.__new__(error_cls)
        DisclosureError.__init__(err, code, data["message"], details)
        if isinstance(err, ParseError):
            err.rule = details.get("rule", "")
            err.position = details.get("position", -1)
            err.line = details.get("line", 0)
            err.column = details.get("column", 0)
        return err


class ConfigurationError(DisclosureError):
    """Bad session parameters. The session is aborted, the service keeps running."""

    category = "config"


class SessionError(DisclosureError):
    """Connect, handshake or commitment failure reported by the backend."""

    category = "network"


class ParseError(DisclosureError):
    """
    Malformed transcript text.

    Carries the grammar rule that failed and the byte position in the raw
    message, plus the derived line/column for humans.
    """

    category = "parse"

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        rule: str,
        position: int,
        line: int = 0,
        column: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = {"rule": rule, "position": position, "line": line, "column": column}
        merged.update(details or {})
        super().__init__(code, f"{message} (rule {rule!r} at byte {position}, line {line}, column {column})", merged)
        self.rule = rule
        self.position = position
        self.line = line
        self.column = column


class AstError(DisclosureError):
    """The syntax tree did not have the shape the document builder expects."""

    category = "parse"


class ResolveError(DisclosureError):
    """A keypath could not be interpreted at all (not: a keypath that matched nothing)."""

    category = "resolve"


class RangeInvariantError(DisclosureError):
    """A span violated start <= end <= len(buffer)."""

    category = "resolve"


_CLASS_BY_PREFIX = {
    "CONFIG": ConfigurationError,
    "SESSION": SessionError,
    "PARSE": ParseError,
    "AST": AstError,
    "RESOLVE": ResolveError,
    "RANGE": RangeInvariantError,
    "IPC": ConfigurationError,
}


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> DisclosureError:
    """
    Convert a generic exception to a DisclosureError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while opening prover session")

    Returns:
        DisclosureError with appropriate code and message
    """
    if isinstance(error, DisclosureError):
        return error

    error_type = type(error).__name__
    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    details = {
        "original_type": error_type,
        "original_message": str(error),
    }

    if isinstance(error, TimeoutError):
        return SessionError(ErrorCode.SESSION_TIMEOUT, message, details)
    if isinstance(error, (ConnectionError, OSError)):
        return SessionError(ErrorCode.SESSION_CONNECT_FAILED, message, details)

    return DisclosureError(ErrorCode.SYSTEM_INTERNAL_ERROR, message, details)


__all__ = [
    "ErrorCode",
    "DisclosureError",
    "ConfigurationError",
    "SessionError",
    "ParseError",
    "AstError",
    "ResolveError",
    "RangeInvariantError",
    "handle_error",
]
