from .documents import (
    Document,
    Header,
    JsonField,
    JsonValue,
    Request,
    Response,
    build_json,
    build_request,
    build_response,
    load_request,
    load_response,
)

__all__ = [
    "Document",
    "Header",
    "JsonField",
    "JsonValue",
    "Request",
    "Response",
    "build_json",
    "build_request",
    "build_response",
    "load_request",
    "load_response",
]
