"""
disclosure/ast/documents.py
Typed, read-only documents built from a parsed transcript.

Request and Response are independent dataclasses. Both expose ordered
headers, an optional JSON body tree and the value spans the resolver needs;
neither inherits from the other. Each implements resolve_keypaths() by
delegating to disclosure.resolver.

Value spans cover the value token only: header values without OWS, JSON
strings without their quotes, numbers and literals as written, objects and
arrays including their brackets. Field names are never part of a value span.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from disclosure.errors import AstError, ErrorCode
from disclosure.grammar.json_grammar import decode_string_content
from disclosure.grammar.nodes import NodeKind, RawMessage, SyntaxNode
from disclosure.ranges import RangeSet

Span = Tuple[int, int]

HOST_FIELD = "host"


@dataclass(frozen=True)
class Header:
    name: str
    value: str
    span: Span  # value only
    line_span: Span  # name through end of value


@dataclass(frozen=True)
class JsonField:
    name: str
    key_span: Span
    value: "JsonValue"


@dataclass(frozen=True)
class JsonValue:
    kind: NodeKind
    span: Span
    token: Optional[str] = None
    fields: Tuple[JsonField, ...] = ()
    items: Tuple["JsonValue", ...] = ()

    @property
    def is_object(self) -> bool:
        return self.kind == NodeKind.JSON_OBJECT

    def get(self, name: str) -> Optional["JsonValue"]:
        """Exact, case-sensitive field lookup. None for absent fields and non-objects."""
        if not self.is_object:
            return None
        for f in self.fields:
            if f.name == name:
                return f.value
        return None

    def keys(self) -> List[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class Request:
    raw: RawMessage = field(repr=False)
    root: SyntaxNode = field(repr=False)
    method: str
    target: str
    version: str
    headers: Tuple[Header, ...]
    body_span: Span
    body: Optional[JsonValue] = None
    host_span: Optional[Span] = None

    def header(self, name: str) -> Optional[Header]:
        """First header with this name, case-insensitively."""
        lname = name.lower()
        for h in self.headers:
            if h.name.lower() == lname:
                return h
        return None

    def headers_named(self, name: str) -> Tuple[Header, ...]:
        lname = name.lower()
        return tuple(h for h in self.headers if h.name.lower() == lname)

    def synthetic_field(self, name: str) -> Optional[Span]:
        if name == HOST_FIELD:
            return self.host_span
        return None

    @property
    def host(self) -> Optional[str]:
        if self.host_span is None:
            return None
        return self.raw.slice(*self.host_span).decode("latin-1")

    def resolve_keypaths(self, include: Iterable[str], exclude: Iterable[str]) -> RangeSet:
        from disclosure.resolver import resolve
        return resolve(self, include, exclude)


@dataclass(frozen=True)
class Response:
    raw: RawMessage = field(repr=False)
    root: SyntaxNode = field(repr=False)
    version: str
    status: int
    reason: str
    headers: Tuple[Header, ...]
    body_span: Span
    body: Optional[JsonValue] = None

    def header(self, name: str) -> Optional[Header]:
        lname = name.lower()
        for h in self.headers:
            if h.name.lower() == lname:
                return h
        return None

    def headers_named(self, name: str) -> Tuple[Header, ...]:
        lname = name.lower()
        return tuple(h for h in self.headers if h.name.lower() == lname)

    def synthetic_field(self, name: str) -> Optional[Span]:
        return None

    def resolve_keypaths(self, include: Iterable[str], exclude: Iterable[str]) -> RangeSet:
        from disclosure.resolver import resolve
        return resolve(self, include, exclude)


Document = Union[Request, Response]


# ============================================================================
# Builders
# ============================================================================

def _shape(message: str, node: Optional[SyntaxNode] = None) -> AstError:
    details: Dict[str, object] = {}
    if node is not None:
        details = {"kind": node.kind.value, "start": node.start, "end": node.end}
    return AstError(ErrorCode.AST_SHAPE_MISMATCH, message, details)


def _expect(node: Optional[SyntaxNode], kind: NodeKind, parent: SyntaxNode) -> SyntaxNode:
    if node is None or node.kind != kind:
        found = node.kind.value if node is not None else "nothing"
        raise _shape(f"expected {kind.value} under {parent.kind.value}, found {found}", parent)
    return node


def _token(node: SyntaxNode) -> str:
    if node.token is None:
        raise _shape(f"{node.kind.value} carries no token", node)
    return node.token


def _split_children(root: SyntaxNode, start_kind: NodeKind):
    children = root.children
    if len(children) < 2:
        raise _shape(f"{root.kind.value} needs a start line and a body", root)
    start_line = _expect(children[0], start_kind, root)
    body = _expect(children[-1], NodeKind.BODY, root)
    headers = tuple(_build_header(_expect(h, NodeKind.HEADER, root)) for h in children[1:-1])
    return start_line, headers, body


def _build_header(node: SyntaxNode) -> Header:
    if len(node.children) != 2:
        raise _shape("header needs exactly a name and a value", node)
    name = _expect(node.children[0], NodeKind.HEADER_NAME, node)
    value = _expect(node.children[1], NodeKind.HEADER_VALUE, node)
    return Header(name=_token(name), value=_token(value), span=value.span, line_span=node.span)


def build_json(node: SyntaxNode) -> JsonValue:
    kind = node.kind
    if kind == NodeKind.JSON_OBJECT:
        fields = []
        for f in node.children:
            _expect(f, NodeKind.JSON_FIELD, node)
            if len(f.children) != 2:
                raise _shape("json-field needs a key and a value", f)
            key = _expect(f.children[0], NodeKind.JSON_KEY, f)
            if len(key.children) != 1:
                raise _shape("json-key needs exactly one content node", key)
            content = _expect(key.children[0], NodeKind.JSON_STRING_CONTENT, key)
            try:
                name = decode_string_content(_token(content))
            except (UnicodeDecodeError, ValueError) as e:
                raise _shape(f"undecodable field name: {e}", key) from e
            fields.append(JsonField(name=name, key_span=key.span, value=build_json(f.children[1])))
        return JsonValue(kind, node.span, fields=tuple(fields))
    if kind == NodeKind.JSON_ARRAY:
        return JsonValue(kind, node.span, items=tuple(build_json(c) for c in node.children))
    if kind == NodeKind.JSON_STRING:
        if len(node.children) != 1:
            raise _shape("json-string needs exactly one content node", node)
        content = _expect(node.children[0], NodeKind.JSON_STRING_CONTENT, node)
        return JsonValue(kind, content.span, token=_token(content))
    if kind in (NodeKind.JSON_NUMBER, NodeKind.JSON_LITERAL):
        return JsonValue(kind, node.span, token=_token(node))
    raise _shape(f"{kind.value} is not a JSON value", node)


def _build_body(node: SyntaxNode) -> Optional[JsonValue]:
    if node.is_leaf:
        return None
    if len(node.children) != 1:
        raise _shape("body holds at most one JSON value", node)
    value = build_json(node.children[0])
    if value.kind not in (NodeKind.JSON_OBJECT, NodeKind.JSON_ARRAY):
        raise _shape("JSON body must be an object or an array", node)
    return value


def _authority_span(target: SyntaxNode) -> Optional[Span]:
    """Authority of an absolute-form target (scheme://[userinfo@]host[:port]/...)."""
    text = _token(target)
    sep = text.find("://")
    if sep <= 0:
        return None
    begin = sep + 3
    end = len(text)
    for stop in "/?#":
        i = text.find(stop, begin)
        if i != -1:
            end = min(end, i)
    at = text.rfind("@", begin, end)
    if at != -1:
        begin = at + 1
    if begin >= end:
        return None
    return (target.start + begin, target.start + end)


def build_request(root: SyntaxNode, raw: RawMessage) -> Request:
    """Build a Request from a request tree. Raises AstError on any shape mismatch."""
    _expect(root, NodeKind.REQUEST, root)
    line, headers, body = _split_children(root, NodeKind.REQUEST_LINE)
    if len(line.children) != 3:
        raise _shape("request-line needs method, target and version", line)
    method = _expect(line.children[0], NodeKind.METHOD, line)
    target = _expect(line.children[1], NodeKind.REQUEST_TARGET, line)
    version = _expect(line.children[2], NodeKind.HTTP_VERSION, line)

    hosts = [h for h in headers if h.name.lower() == HOST_FIELD]
    if len(hosts) > 1:
        raise AstError(
            ErrorCode.AST_AMBIGUOUS_HOST,
            f"request carries {len(hosts)} Host headers",
            {"spans": [h.line_span for h in hosts]},
        )
    host_span = hosts[0].span if hosts else _authority_span(target)

    return Request(
        raw=raw,
        root=root,
        method=_token(method),
        target=_token(target),
        version=_token(version),
        headers=headers,
        body_span=body.span,
        body=_build_body(body),
        host_span=host_span,
    )


def build_response(root: SyntaxNode, raw: RawMessage) -> Response:
    """Build a Response from a response tree. Raises AstError on any shape mismatch."""
    _expect(root, NodeKind.RESPONSE, root)
    line, headers, body = _split_children(root, NodeKind.STATUS_LINE)
    if len(line.children) not in (2, 3):
        raise _shape("status-line needs version, status code and optional reason", line)
    version = _expect(line.children[0], NodeKind.HTTP_VERSION, line)
    status = _expect(line.children[1], NodeKind.STATUS_CODE, line)
    reason = ""
    if len(line.children) == 3:
        reason = _token(_expect(line.children[2], NodeKind.REASON_PHRASE, line))

    return Response(
        raw=raw,
        root=root,
        version=_token(version),
        status=int(_token(status)),
        reason=reason,
        headers=headers,
        body_span=body.span,
        body=_build_body(body),
    )


def load_request(data, max_size: Optional[int] = None, max_json_depth: Optional[int] = None) -> Request:
    """Parse and build in one step. Raises ParseError or AstError."""
    from disclosure.grammar.parser import parse_request
    raw = data if isinstance(data, RawMessage) else RawMessage(bytes(data))
    kwargs = {} if max_json_depth is None else {"max_json_depth": max_json_depth}
    return build_request(parse_request(raw, max_size=max_size, **kwargs), raw)


def load_response(data, max_size: Optional[int] = None, max_json_depth: Optional[int] = None) -> Response:
    """Parse and build in one step. Raises ParseError or AstError."""
    from disclosure.grammar.parser import parse_response
    raw = data if isinstance(data, RawMessage) else RawMessage(bytes(data))
    kwargs = {} if max_json_depth is None else {"max_json_depth": max_json_depth}
    return build_response(parse_response(raw, max_size=max_size, **kwargs), raw)
