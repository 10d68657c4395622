"""Pytest configuration for the disclosure pipeline."""
import os

import pytest

from disclosure.base.config import set_config


def pytest_configure():
    # Keep test runs independent of the developer's shell environment.
    os.environ.setdefault("DISCLOSURE_LOG_LEVEL", "DEBUG")
    os.environ.setdefault("DISCLOSURE_DEBUG", "false")


@pytest.fixture(autouse=True)
def _reset_config():
    set_config(None)
    yield
    set_config(None)


def _http(start_line: str, headers, body: bytes, content_length: bool) -> bytes:
    lines = [start_line]
    lines += [f"{name}: {value}" for name, value in headers]
    if content_length:
        lines.append(f"Content-Length: {len(body)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body


@pytest.fixture
def make_response():
    """Build response transcript bytes with a matching Content-Length."""
    def _make(body: bytes = b"", status: str = "200 OK", headers=(("Content-Type", "application/json"),),
              content_length: bool = True) -> bytes:
        return _http(f"HTTP/1.1 {status}", headers, body, content_length)
    return _make


@pytest.fixture
def make_request():
    """Build request transcript bytes; Content-Length only when there is a body."""
    def _make(target: str = "/a", headers=(("Host", "example.com"), ("Connection", "close")),
              body: bytes = b"", method: str = "GET") -> bytes:
        return _http(f"{method} {target} HTTP/1.1", headers, body, bool(body))
    return _make


@pytest.fixture
def scenario_a_request() -> bytes:
    return b"GET /a HTTP/1.1\r\nHost: example.com\r\nConnection: close\r\n\r\n"


@pytest.fixture
def payment_body() -> bytes:
    return b'{"state":"done","amount":"10.00","recipient":{"account":"123"}}'
