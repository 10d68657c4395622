from __future__ import annotations

from typing import Callable, NoReturn, Optional, Tuple

from disclosure.errors import ErrorCode, ParseError


def line_col(text: str, pos: int) -> Tuple[int, int]:
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


class Scanner:
    """
    Cursor over the latin-1 view of a RawMessage, bounded to [pos, end).

    Every consuming method either advances or raises ParseError; there is no
    backtracking past a committed token.
    """

    def __init__(self, text: str, code: ErrorCode, pos: int = 0, end: Optional[int] = None):
        self.text = text
        self.code = code
        self.pos = pos
        self.end = len(text) if end is None else end

    def at_end(self) -> bool:
        return self.pos >= self.end

    def peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        if i >= self.end:
            return ""
        return self.text[i]

    def startswith(self, literal: str) -> bool:
        return self.text.startswith(literal, self.pos, self.end)

    def expect(self, literal: str, rule: str) -> Tuple[int, int]:
        if not self.startswith(literal):
            found = self.text[self.pos:self.pos + len(literal)]
            self.fail(rule, f"expected {literal!r}, found {found!r}" if found else f"expected {literal!r}, found end of input")
        start = self.pos
        self.pos += len(literal)
        return start, self.pos

    def take_while(self, pred: Callable[[str], bool]) -> Tuple[int, int]:
        start = self.pos
        while self.pos < self.end and pred(self.text[self.pos]):
            self.pos += 1
        return start, self.pos

    def take_while1(self, pred: Callable[[str], bool], rule: str, what: str) -> Tuple[int, int]:
        start, end = self.take_while(pred)
        if start == end:
            found = self.peek()
            self.fail(rule, f"expected {what}, found {found!r}" if found else f"expected {what}, found end of input")
        return start, end

    def fail(self, rule: str, message: str, position: Optional[int] = None,
             code: Optional[ErrorCode] = None) -> NoReturn:
        pos = self.pos if position is None else position
        line, column = line_col(self.text, pos)
        raise ParseError(code or self.code, message, rule=rule, position=pos, line=line, column=column)
