"""
HTTP/1.x Transcript Grammar (disclosure/grammar/parser.py)

PURPOSE:
Turns the literal bytes of one transcript direction into a positioned
SyntaxNode tree. Offsets in the tree are byte offsets into the RawMessage.

GRAMMAR:
    request        ::= request-line CRLF *( header CRLF ) CRLF body
    response       ::= status-line CRLF *( header CRLF ) CRLF body
    request-line   ::= method SP request-target SP http-version
    status-line    ::= http-version SP 3DIGIT [ SP reason-phrase ]
    http-version   ::= "HTTP/" DIGIT "." DIGIT
    header         ::= header-name ":" OWS header-value OWS
    header-name    ::= 1*tchar
    header-value   ::= *( VCHAR / obs-text / SP / HTAB )
    body           ::= json / *OCTET

Body framing: Content-Length when present (must end exactly at the end of the
buffer); otherwise empty for requests and to-end-of-buffer for responses.
Transfer-Encoding is not supported and is rejected.

Malformed input never yields a partial tree: the first violation raises
ParseError with the failing rule and byte position.
"""

from __future__ import annotations

import logging
import string
from typing import List, Optional, Tuple, Union

from disclosure.errors import ErrorCode, ParseError
from disclosure.grammar.json_grammar import DEFAULT_MAX_DEPTH, JsonGrammar, is_json_shaped
from disclosure.grammar.nodes import NodeKind, RawMessage, SyntaxNode
from disclosure.grammar.scanner import Scanner, line_col

logger = logging.getLogger(__name__)

_TCHAR = frozenset("!#$%&'*+-.^_`|~" + string.ascii_letters + string.digits)
_DIGITS = frozenset(string.digits)
_OWS = " \t"
CRLF = "\r\n"


def _is_tchar(c: str) -> bool:
    return c in _TCHAR


def _is_vchar(c: str) -> bool:
    return "\x21" <= c <= "\x7e"


def _is_field_char(c: str) -> bool:
    # VCHAR / obs-text / SP / HTAB
    return _is_vchar(c) or c in _OWS or "\x80" <= c <= "\xff"


class HttpGrammar:
    """
    Recursive-descent parser for one HTTP/1.x message.

    Usage:
        root = HttpGrammar(raw, NodeKind.RESPONSE).parse()
    """

    def __init__(self, raw: RawMessage, kind: NodeKind, max_json_depth: int = DEFAULT_MAX_DEPTH):
        if kind not in (NodeKind.REQUEST, NodeKind.RESPONSE):
            raise ValueError(f"HttpGrammar parses requests or responses, not {kind.value}")
        self.raw = raw
        self.kind = kind
        self.max_json_depth = max_json_depth
        code = ErrorCode.PARSE_MALFORMED_REQUEST if kind == NodeKind.REQUEST else ErrorCode.PARSE_MALFORMED_RESPONSE
        self.s = Scanner(raw.text(), code)

    def parse(self) -> SyntaxNode:
        if self.kind == NodeKind.REQUEST:
            start_line = self._request_line()
        else:
            start_line = self._status_line()

        headers = self._headers()
        self.s.expect(CRLF, NodeKind.HEADER.value)
        body = self._body(headers)

        root = SyntaxNode(self.kind, 0, len(self.raw), (start_line, *headers, body))
        logger.debug(f"[Parser] {self.kind.value}: {len(headers)} headers, body {body.end - body.start} bytes")
        return root

    # ------------------------------------------------------------------
    # Start lines
    # ------------------------------------------------------------------

    def _digit(self, rule: str, what: str) -> None:
        c = self.s.peek()
        if c not in _DIGITS:
            self.s.fail(rule, f"expected {what}, found {c!r}" if c else f"expected {what}, found end of input")
        self.s.pos += 1

    def _version(self) -> SyntaxNode:
        rule = NodeKind.HTTP_VERSION.value
        start, _ = self.s.expect("HTTP/", rule)
        self._digit(rule, "major version digit")
        self.s.expect(".", rule)
        self._digit(rule, "minor version digit")
        return SyntaxNode(NodeKind.HTTP_VERSION, start, self.s.pos, token=self.s.text[start:self.s.pos])

    def _leaf(self, kind: NodeKind, span: Tuple[int, int]) -> SyntaxNode:
        start, end = span
        return SyntaxNode(kind, start, end, token=self.s.text[start:end])

    def _request_line(self) -> SyntaxNode:
        rule = NodeKind.REQUEST_LINE.value
        method = self._leaf(NodeKind.METHOD, self.s.take_while1(_is_tchar, NodeKind.METHOD.value, "method token"))
        self.s.expect(" ", rule)
        target = self._leaf(
            NodeKind.REQUEST_TARGET,
            self.s.take_while1(_is_vchar, NodeKind.REQUEST_TARGET.value, "request target"),
        )
        self.s.expect(" ", rule)
        version = self._version()
        end = self.s.pos
        self.s.expect(CRLF, rule)
        return SyntaxNode(NodeKind.REQUEST_LINE, method.start, end, (method, target, version))

    def _status_line(self) -> SyntaxNode:
        rule = NodeKind.STATUS_LINE.value
        version = self._version()
        self.s.expect(" ", rule)
        code_start = self.s.pos
        for _ in range(3):
            self._digit(NodeKind.STATUS_CODE.value, "status code digit")
        if self.s.peek() in _DIGITS:
            self.s.fail(NodeKind.STATUS_CODE.value, "status code longer than three digits")
        status = self._leaf(NodeKind.STATUS_CODE, (code_start, self.s.pos))
        children: List[SyntaxNode] = [version, status]
        if self.s.peek() == " ":
            self.s.pos += 1
            reason_span = self.s.take_while(lambda c: _is_field_char(c))
            children.append(self._leaf(NodeKind.REASON_PHRASE, reason_span))
        end = self.s.pos
        self.s.expect(CRLF, rule)
        return SyntaxNode(NodeKind.STATUS_LINE, version.start, end, tuple(children))

    # ------------------------------------------------------------------
    # Header section
    # ------------------------------------------------------------------

    def _headers(self) -> List[SyntaxNode]:
        headers: List[SyntaxNode] = []
        while not self.s.startswith(CRLF):
            if self.s.at_end():
                self.s.fail(NodeKind.HEADER.value, "header section not terminated by an empty line")
            headers.append(self._header())
        return headers

    def _header(self) -> SyntaxNode:
        rule = NodeKind.HEADER.value
        if self.s.peek() in _OWS:
            self.s.fail(rule, "obsolete line folding is not allowed")
        name = self._leaf(
            NodeKind.HEADER_NAME,
            self.s.take_while1(_is_tchar, NodeKind.HEADER_NAME.value, "field name"),
        )
        self.s.expect(":", rule)
        self.s.take_while(lambda c: c in _OWS)
        value_start, line_end = self.s.take_while(_is_field_char)
        if not self.s.startswith(CRLF):
            found = self.s.peek()
            if found:
                self.s.fail(NodeKind.HEADER_VALUE.value, f"invalid character {found!r} in field value")
            self.s.fail(NodeKind.HEADER_VALUE.value, "field value not terminated by CRLF")
        value_end = line_end
        while value_end > value_start and self.s.text[value_end - 1] in _OWS:
            value_end -= 1
        self.s.pos += len(CRLF)
        value = self._leaf(NodeKind.HEADER_VALUE, (value_start, value_end))
        return SyntaxNode(NodeKind.HEADER, name.start, line_end, (name, value))

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------

    def _content_length(self, headers: List[SyntaxNode]) -> Optional[int]:
        lengths = set()
        for h in headers:
            name, value = h.children
            lname = (name.token or "").lower()
            if lname == "transfer-encoding":
                self.s.fail(NodeKind.BODY.value, "Transfer-Encoding is not supported", position=h.start,
                            code=ErrorCode.PARSE_UNSUPPORTED_FRAMING)
            if lname == "content-length":
                token = value.token or ""
                if not token or any(c not in _DIGITS for c in token):
                    self.s.fail(NodeKind.HEADER_VALUE.value, f"invalid Content-Length {token!r}", position=value.start)
                lengths.add(int(token))
        if len(lengths) > 1:
            self.s.fail(NodeKind.BODY.value, f"conflicting Content-Length values {sorted(lengths)}")
        return lengths.pop() if lengths else None

    def _body(self, headers: List[SyntaxNode]) -> SyntaxNode:
        rule = NodeKind.BODY.value
        start = self.s.pos
        remaining = len(self.raw) - start
        declared = self._content_length(headers)

        if declared is None and self.kind == NodeKind.REQUEST and remaining:
            self.s.fail(rule, f"{remaining} bytes after request header section without Content-Length")
        if declared is not None and declared != remaining:
            if declared > remaining:
                self.s.fail(rule, f"body is {remaining} bytes, Content-Length declares {declared}", position=len(self.raw))
            self.s.fail(rule, f"{remaining - declared} trailing bytes after body", position=start + declared)

        end = len(self.raw)
        if start < end and is_json_shaped(self.s.text, start, end):
            code = ErrorCode.PARSE_MALFORMED_JSON
            json_root = JsonGrammar(Scanner(self.s.text, code, start, end), self.max_json_depth).parse_document()
            return SyntaxNode(NodeKind.BODY, start, end, (json_root,))
        return SyntaxNode(NodeKind.BODY, start, end, token=self.s.text[start:end])


def _coerce(raw: Union[RawMessage, bytes, bytearray]) -> RawMessage:
    return raw if isinstance(raw, RawMessage) else RawMessage(bytes(raw))


def _check_size(raw: RawMessage, kind: NodeKind, max_size: Optional[int]) -> None:
    if max_size is not None and len(raw) > max_size:
        line, column = line_col(raw.text(), max_size)
        raise ParseError(
            ErrorCode.PARSE_INPUT_TOO_LARGE,
            f"{kind.value} is {len(raw)} bytes, ceiling is {max_size}",
            rule=kind.value,
            position=max_size,
            line=line,
            column=column,
        )


def parse_request(raw: Union[RawMessage, bytes], max_size: Optional[int] = None,
                  max_json_depth: int = DEFAULT_MAX_DEPTH) -> SyntaxNode:
    """Parse a sent transcript. Raises ParseError."""
    message = _coerce(raw)
    _check_size(message, NodeKind.REQUEST, max_size)
    return HttpGrammar(message, NodeKind.REQUEST, max_json_depth).parse()


def parse_response(raw: Union[RawMessage, bytes], max_size: Optional[int] = None,
                   max_json_depth: int = DEFAULT_MAX_DEPTH) -> SyntaxNode:
    """Parse a received transcript. Raises ParseError."""
    message = _coerce(raw)
    _check_size(message, NodeKind.RESPONSE, max_size)
    return HttpGrammar(message, NodeKind.RESPONSE, max_json_depth).parse()
