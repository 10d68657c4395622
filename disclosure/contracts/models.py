from __future__ import annotations

import string
from typing import List, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from disclosure.errors import ConfigurationError, ErrorCode

_TCHAR = frozenset("!#$%&'*+-.^_`|~" + string.ascii_letters + string.digits)


def split_header(header: str) -> Tuple[str, str]:
    """
    Split a "Name: Value" string.

    The name must be an HTTP token; the value is trimmed and may contain
    visible characters, spaces and tabs only.
    """
    name, sep, value = header.partition(":")
    if not sep:
        raise ValueError(f"header {header!r} must be in the format 'Name: Value'")
    name = name.strip()
    value = value.strip(" \t")
    if not name or any(c not in _TCHAR for c in name):
        raise ValueError(f"invalid header name {name!r}")
    if any(not ("\x21" <= c <= "\x7e" or c in " \t") for c in value):
        raise ValueError(f"invalid header value for {name!r}")
    return name, value


class SessionRequest(BaseModel):
    """
    Parameters for one disclosure session, as received from the client.

    Example:
        {"server_uri": "https://api.example.com/v1/payments/42",
         "verifier_address": "127.0.0.1:8079",
         "headers": ["Authorization: Bearer ..."],
         "max_sent_data": 4096, "max_recv_data": 16384}
    """
    server_uri: str = Field(min_length=1, max_length=8192)
    verifier_address: str = Field(default="127.0.0.1:8079", min_length=3, max_length=300)
    headers: List[str] = Field(default_factory=list, max_length=128)
    max_sent_data: int = Field(default=4096, gt=0, le=1 << 30)
    max_recv_data: int = Field(default=16384, gt=0, le=1 << 30)

    @field_validator("server_uri")
    @classmethod
    def validate_server_uri(cls, v: str) -> str:
        try:
            url = httpx.URL(v.strip())
        except httpx.InvalidURL as e:
            raise PydanticCustomError("uri_invalid", "invalid uri: {reason}", {"reason": str(e)}) from e
        if url.scheme != "https":
            raise PydanticCustomError(
                "uri_scheme", "scheme must be https, got {scheme}", {"scheme": repr(url.scheme or "none")}
            )
        if not url.host:
            raise PydanticCustomError("uri_missing_host", "uri does not have an authority or host")
        return str(url)

    @field_validator("verifier_address")
    @classmethod
    def validate_verifier_address(cls, v: str) -> str:
        host, sep, port = v.strip().rpartition(":")
        if not sep or not host:
            raise ValueError(f"verifier address {v!r} must be host:port")
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"invalid verifier port {port!r}")
        return f"{host}:{int(port)}"

    @field_validator("headers")
    @classmethod
    def validate_headers(cls, v: List[str]) -> List[str]:
        for header in v:
            split_header(header)
        return v

    def header_pairs(self) -> List[Tuple[str, str]]:
        return [split_header(h) for h in self.headers]

    def verifier_endpoint(self) -> Tuple[str, int]:
        host, _, port = self.verifier_address.rpartition(":")
        return host.strip("[]"), int(port)

    @classmethod
    def from_message(cls, message: Union[str, bytes],
                     default_verifier: Optional[str] = None) -> "SessionRequest":
        """
        Validate a raw JSON session message. Raises ConfigurationError.

        default_verifier replaces the built-in verifier address when the
        message does not name one.
        """
        try:
            request = cls.model_validate_json(message)
            if default_verifier is not None and "verifier_address" not in request.model_fields_set:
                request = cls.model_validate({**request.model_dump(), "verifier_address": default_verifier})
            return request
        except ValidationError as e:
            raise _configuration_error(e) from e


_FIELD_CODES = {
    "server_uri": ErrorCode.CONFIG_INVALID_URI,
    "verifier_address": ErrorCode.CONFIG_INVALID_ADDRESS,
    "headers": ErrorCode.CONFIG_INVALID_HEADER,
}

_TYPE_CODES = {
    "uri_scheme": ErrorCode.CONFIG_INVALID_SCHEME,
    "uri_missing_host": ErrorCode.CONFIG_MISSING_HOST,
}


def _configuration_error(e: ValidationError) -> ConfigurationError:
    errors = e.errors()
    first = errors[0] if errors else {}
    error_type = first.get("type")
    if error_type == "json_invalid":
        return ConfigurationError(ErrorCode.IPC_MALFORMED_MESSAGE, f"session message is not valid JSON: {first.get('msg')}")

    loc = first.get("loc", ())
    field_name = str(loc[0]) if loc else ""
    msg = str(first.get("msg", e))
    code = _TYPE_CODES.get(error_type) or _FIELD_CODES.get(field_name, ErrorCode.CONFIG_INVALID)
    return ConfigurationError(
        code,
        f"{field_name or 'session'}: {msg}",
        details={"errors": [{"loc": list(err.get("loc", ())), "type": err.get("type"), "msg": err.get("msg")} for err in errors]},
    )
