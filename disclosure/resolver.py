"""
Keypath Resolver (disclosure/resolver.py)

PURPOSE:
Maps dotted keypaths onto the byte spans of the values they name.

RULES:
- A bare segment is looked up as a header name first (case-insensitive, first
  occurrence), then as a synthetic document field (the request's "host"),
  then as a top-level body field.
- A dotted keypath descends through JSON objects by exact field name.
- Anything unmatched at any depth contributes nothing. That is how optional
  fields behave and is not an error.
- include and exclude are resolved independently and unioned. Neither one is
  the complement of the other; the caller decides what to do with each set.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Tuple

from disclosure.errors import ErrorCode, ResolveError
from disclosure.ranges import RangeSet, RangeSpan, merge

logger = logging.getLogger(__name__)

Span = Tuple[int, int]


class KeypathResolvable(Protocol):
    """What each document variant offers the resolver."""

    raw: object
    headers: tuple
    body: object

    def header(self, name: str): ...
    def synthetic_field(self, name: str) -> Optional[Span]: ...
    def resolve_keypaths(self, include: Iterable[str], exclude: Iterable[str]) -> RangeSet: ...


def parse_keypath(keypath: str) -> Tuple[str, ...]:
    """Split "a.b.c" into segments. Empty keypaths and empty segments are rejected."""
    if not isinstance(keypath, str):
        raise ResolveError(
            ErrorCode.RESOLVE_INVALID_KEYPATH,
            f"keypath must be a string, got {type(keypath).__name__}",
        )
    segments = tuple(keypath.split("."))
    if not keypath or any(not s for s in segments):
        raise ResolveError(
            ErrorCode.RESOLVE_INVALID_KEYPATH,
            f"malformed keypath {keypath!r}",
            details={"keypath": keypath},
        )
    return segments


def resolve_one(document: KeypathResolvable, keypath: str) -> Optional[RangeSpan]:
    """Span of the value named by keypath, or None when any segment is unmatched."""
    segments = parse_keypath(keypath)
    head, rest = segments[0], segments[1:]

    if not rest:
        header = document.header(head)
        if header is not None:
            return RangeSpan(*header.span)
        synthetic = document.synthetic_field(head)
        if synthetic is not None:
            return RangeSpan(*synthetic)

    node = document.body
    if node is None:
        return None
    for segment in segments:
        node = node.get(segment)
        if node is None:
            return None
    return RangeSpan(*node.span)


def _collect(document: KeypathResolvable, keypaths: Iterable[str], label: str) -> List[RangeSpan]:
    spans: List[RangeSpan] = []
    for keypath in keypaths:
        span = resolve_one(document, keypath)
        if span is None:
            logger.debug(f"[Resolver] {label} keypath {keypath!r} not present")
            continue
        spans.append(span)
    return spans


def resolve(document: KeypathResolvable, include_keypaths: Iterable[str],
            exclude_keypaths: Iterable[str]) -> RangeSet:
    """
    Canonical RangeSet of every matched keypath in either list.

    The result does not depend on the order of either list.
    """
    limit = len(document.raw)
    spans = _collect(document, include_keypaths, "include")
    spans += _collect(document, exclude_keypaths, "exclude")
    return merge(spans, limit)
