"""
JSON body grammar (RFC 8259), recursive descent.

    value   ::= object | array | string | number | "true" | "false" | "null"
    object  ::= "{" ws [ field ( ws "," ws field )* ] ws "}"
    field   ::= string ws ":" ws value
    array   ::= "[" ws [ value ( ws "," ws value )* ] ws "]"

Strings keep their quotes in the json-string node; the inner
json-string-content leaf is the value span handed to the resolver.
A field name appearing twice in one object is rejected: two parsers could
read such a document differently.
"""

from __future__ import annotations

import json
import re
from typing import List, Set

from disclosure.errors import ErrorCode
from disclosure.grammar.nodes import NodeKind, SyntaxNode
from disclosure.grammar.scanner import Scanner

DEFAULT_MAX_DEPTH = 64

_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_WS = " \t\n\r"
_SIMPLE_ESCAPES = '"\\/bfnrt'
_HEX = "0123456789abcdefABCDEF"
_LITERALS = ("true", "false", "null")


def is_json_shaped(text: str, start: int, end: int) -> bool:
    """True when the first non-whitespace char in [start, end) opens an object or array."""
    i = start
    while i < end and text[i] in _WS:
        i += 1
    return i < end and text[i] in "{["


def decode_string_content(raw_content: str) -> str:
    """
    Interpret the inner text of a validated JSON string.

    raw_content is the latin-1 view of the bytes; the bytes must be UTF-8.
    Raises UnicodeDecodeError or ValueError.
    """
    utf8 = raw_content.encode("latin-1").decode("utf-8")
    return json.loads('"' + utf8 + '"')


class JsonGrammar:
    def __init__(self, scanner: Scanner, max_depth: int = DEFAULT_MAX_DEPTH):
        self.s = scanner
        self.max_depth = max_depth

    def parse_document(self) -> SyntaxNode:
        """Parse exactly one value, allowing surrounding whitespace, up to scanner.end."""
        self._ws()
        node = self._value(0)
        self._ws()
        if not self.s.at_end():
            self.s.fail(NodeKind.JSON_OBJECT.value, f"unexpected {self.s.peek()!r} after JSON value")
        return node

    # ------------------------------------------------------------------

    def _ws(self) -> None:
        self.s.take_while(lambda c: c in _WS)

    def _value(self, depth: int) -> SyntaxNode:
        c = self.s.peek()
        if c == "{":
            return self._object(depth + 1)
        if c == "[":
            return self._array(depth + 1)
        if c == '"':
            return self._string(NodeKind.JSON_STRING)
        if c and c in "-0123456789":
            return self._number()
        for lit in _LITERALS:
            if self.s.startswith(lit):
                start, end = self.s.expect(lit, NodeKind.JSON_LITERAL.value)
                return SyntaxNode(NodeKind.JSON_LITERAL, start, end, token=lit)
        self.s.fail("json-value", f"expected a JSON value, found {c!r}" if c else "expected a JSON value, found end of input")

    def _check_depth(self, depth: int, rule: NodeKind) -> None:
        if depth > self.max_depth:
            self.s.fail(rule.value, f"nesting deeper than {self.max_depth} levels")

    def _object(self, depth: int) -> SyntaxNode:
        self._check_depth(depth, NodeKind.JSON_OBJECT)
        start, _ = self.s.expect("{", NodeKind.JSON_OBJECT.value)
        fields: List[SyntaxNode] = []
        seen: Set[str] = set()
        self._ws()
        if self.s.peek() != "}":
            while True:
                field_node, name = self._field(depth)
                if name in seen:
                    self.s.fail(NodeKind.JSON_FIELD.value, f"duplicate field name {name!r}", position=field_node.start)
                seen.add(name)
                fields.append(field_node)
                self._ws()
                if self.s.peek() == ",":
                    self.s.pos += 1
                    self._ws()
                    continue
                break
        _, end = self.s.expect("}", NodeKind.JSON_OBJECT.value)
        return SyntaxNode(NodeKind.JSON_OBJECT, start, end, tuple(fields))

    def _field(self, depth: int):
        if self.s.peek() != '"':
            self.s.fail(NodeKind.JSON_KEY.value, "expected a quoted field name")
        key = self._string(NodeKind.JSON_KEY)
        content = key.children[0]
        try:
            name = decode_string_content(content.token or "")
        except (UnicodeDecodeError, ValueError) as e:
            self.s.fail(NodeKind.JSON_KEY.value, f"field name is not valid UTF-8 text: {e}", position=key.start)
        self._ws()
        self.s.expect(":", NodeKind.JSON_FIELD.value)
        self._ws()
        value = self._value(depth)
        return SyntaxNode(NodeKind.JSON_FIELD, key.start, value.end, (key, value)), name

    def _array(self, depth: int) -> SyntaxNode:
        self._check_depth(depth, NodeKind.JSON_ARRAY)
        start, _ = self.s.expect("[", NodeKind.JSON_ARRAY.value)
        items: List[SyntaxNode] = []
        self._ws()
        if self.s.peek() != "]":
            while True:
                items.append(self._value(depth))
                self._ws()
                if self.s.peek() == ",":
                    self.s.pos += 1
                    self._ws()
                    continue
                break
        _, end = self.s.expect("]", NodeKind.JSON_ARRAY.value)
        return SyntaxNode(NodeKind.JSON_ARRAY, start, end, tuple(items))

    def _string(self, kind: NodeKind) -> SyntaxNode:
        rule = kind.value
        start, _ = self.s.expect('"', rule)
        content_start = self.s.pos
        while True:
            c = self.s.peek()
            if c == "":
                self.s.fail(rule, "unterminated string", position=start)
            if c == '"':
                break
            if c == "\\":
                esc = self.s.peek(1)
                if esc and esc in _SIMPLE_ESCAPES:
                    self.s.pos += 2
                    continue
                if esc == "u":
                    digits = "".join(self.s.peek(i) for i in range(2, 6))
                    if len(digits) == 4 and all(d in _HEX for d in digits):
                        self.s.pos += 6
                        continue
                    self.s.fail(rule, f"invalid unicode escape \\u{digits}")
                self.s.fail(rule, f"invalid escape \\{esc}" if esc else "trailing backslash")
            if ord(c) < 0x20:
                self.s.fail(rule, f"unescaped control character {c!r} in string")
            self.s.pos += 1
        content_end = self.s.pos
        self.s.pos += 1
        content = SyntaxNode(
            NodeKind.JSON_STRING_CONTENT,
            content_start,
            content_end,
            token=self.s.text[content_start:content_end],
        )
        return SyntaxNode(kind, start, self.s.pos, (content,))

    def _number(self) -> SyntaxNode:
        m = _NUMBER_RE.match(self.s.text, self.s.pos, self.s.end)
        if not m:
            self.s.fail(NodeKind.JSON_NUMBER.value, "malformed number")
        start, end = m.span()
        self.s.pos = end
        return SyntaxNode(NodeKind.JSON_NUMBER, start, end, token=m.group(0))


def parse_json(text: str, start: int = 0, end=None, max_depth: int = DEFAULT_MAX_DEPTH,
               code: ErrorCode = ErrorCode.PARSE_MALFORMED_JSON) -> SyntaxNode:
    """Parse the JSON value occupying text[start:end] (surrounding whitespace allowed)."""
    return JsonGrammar(Scanner(text, code, start, end), max_depth).parse_document()
