"""
disclosure/grammar/nodes.py
Positioned syntax tree shared by the request and response grammars.

Every node covers a half-open byte span [start, end) of one RawMessage.
Leaf nodes keep the lexeme the parser consumed so the span can be checked
against the source at any time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple


class NodeKind(str, Enum):
    """Grammar rules that produce nodes. Values double as rule names in errors."""

    REQUEST = "request"
    RESPONSE = "response"
    REQUEST_LINE = "request-line"
    STATUS_LINE = "status-line"
    METHOD = "method"
    REQUEST_TARGET = "request-target"
    HTTP_VERSION = "http-version"
    STATUS_CODE = "status-code"
    REASON_PHRASE = "reason-phrase"
    HEADER = "header"
    HEADER_NAME = "header-name"
    HEADER_VALUE = "header-value"
    BODY = "body"
    JSON_OBJECT = "json-object"
    JSON_FIELD = "json-field"
    JSON_KEY = "json-key"
    JSON_ARRAY = "json-array"
    JSON_STRING = "json-string"
    JSON_STRING_CONTENT = "json-string-content"
    JSON_NUMBER = "json-number"
    JSON_LITERAL = "json-literal"


@dataclass(frozen=True)
class RawMessage:
    """Immutable transcript bytes for one direction."""

    data: bytes

    def __post_init__(self):
        if not isinstance(self.data, (bytes, bytearray, memoryview)):
            raise TypeError(f"RawMessage expects bytes, got {type(self.data).__name__}")
        object.__setattr__(self, "data", bytes(self.data))

    def __len__(self) -> int:
        return len(self.data)

    def text(self) -> str:
        # latin-1 maps every byte to exactly one code point, so text offsets
        # are byte offsets. Nothing is ever substituted or dropped.
        return self.data.decode("latin-1")

    def slice(self, start: int, end: int) -> bytes:
        return self.data[start:end]


@dataclass(frozen=True)
class SyntaxNode:
    kind: NodeKind
    start: int
    end: int
    children: Tuple["SyntaxNode", ...] = field(default_factory=tuple)
    token: Optional[str] = None

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def child(self, kind: NodeKind) -> Optional["SyntaxNode"]:
        for c in self.children:
            if c.kind == kind:
                return c
        return None

    def children_of(self, kind: NodeKind) -> Tuple["SyntaxNode", ...]:
        return tuple(c for c in self.children if c.kind == kind)

    def walk(self) -> Iterator["SyntaxNode"]:
        """Depth-first, pre-order."""
        yield self
        for c in self.children:
            yield from c.walk()

    def leaves(self) -> Iterator["SyntaxNode"]:
        for node in self.walk():
            if node.is_leaf:
                yield node

    def bytes_of(self, raw: RawMessage) -> bytes:
        return raw.slice(self.start, self.end)

    def pretty(self, indent: int = 0) -> str:
        pad = "  " * indent
        line = f"{pad}{self.kind.value} [{self.start}, {self.end})"
        if self.token is not None:
            line += f" {self.token!r}"
        return "\n".join([line] + [c.pretty(indent + 1) for c in self.children])


def check_tree(node: SyntaxNode) -> None:
    """
    Assert the containment and ordering invariants of a tree.

    Raises AssertionError; callers that need a structured error wrap it.
    """
    assert 0 <= node.start <= node.end, f"inverted span on {node.kind.value}"
    prev_end = node.start
    for c in node.children:
        assert node.start <= c.start and c.end <= node.end, (
            f"{c.kind.value} [{c.start}, {c.end}) escapes {node.kind.value} [{node.start}, {node.end})"
        )
        assert c.start >= prev_end, f"{c.kind.value} at {c.start} overlaps previous sibling"
        prev_end = c.end
        check_tree(c)
