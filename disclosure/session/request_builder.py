"""
Composes the exact request bytes sent through the protected channel.

The request is always:
    GET <origin-form target> HTTP/1.1
    connection: close
    host: <uri host>
    <extra headers, in the order given>

A repeated extra header name replaces the earlier value (case-insensitively),
including the two defaults above.

SessionRequest has already checked that the URI is https and has a host.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import httpx

from disclosure.contracts.models import SessionRequest
from disclosure.errors import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_HTTPS_PORT = 443


def server_endpoint(request: SessionRequest,
                    on_notice: Optional[Callable[[str], None]] = None) -> Tuple[str, int]:
    """(host, port) of the target server; port defaults to 443."""
    url = httpx.URL(request.server_uri)
    port = url.port
    if port is None:
        notice = f"No port found, using default port {DEFAULT_HTTPS_PORT}"
        logger.info(f"[RequestBuilder] {notice}")
        if on_notice is not None:
            on_notice(notice)
        port = DEFAULT_HTTPS_PORT
    return url.host, port


def host_header_value(url: httpx.URL) -> str:
    host = url.raw_host.decode("ascii")
    # IPv6 literals keep their brackets in the Host header
    if ":" in host:
        host = f"[{host}]"
    return host


def build_header_list(request: SessionRequest) -> List[Tuple[str, str]]:
    url = httpx.URL(request.server_uri)
    headers: List[Tuple[str, str]] = [("connection", "close"), ("host", host_header_value(url))]
    for name, value in request.header_pairs():
        lname = name.lower()
        headers = [(n, v) for n, v in headers if n.lower() != lname]
        headers.append((name, value))
    return headers


def build_http_request(request: SessionRequest) -> bytes:
    """Serialize the session's GET request as HTTP/1.1 bytes."""
    url = httpx.URL(request.server_uri)
    target = url.raw_path.decode("ascii") or "/"
    lines = [f"GET {target} HTTP/1.1"]
    lines += [f"{name}: {value}" for name, value in build_header_list(request)]
    data = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
    if len(data) > request.max_sent_data:
        raise ConfigurationError(
            ErrorCode.CONFIG_INVALID,
            f"request is {len(data)} bytes, max_sent_data is {request.max_sent_data}",
        )
    return data
