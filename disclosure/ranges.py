# disclosure/ranges.py
# Canonical byte-range sets handed to the commitment backend.
#
# A RangeSet is always sorted by start with no two spans overlapping or
# touching. Every span is checked against the buffer length it was built for;
# a violation is a bug in the caller and raises RangeInvariantError rather
# than being clamped.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple, Union

from disclosure.errors import ErrorCode, RangeInvariantError


@dataclass(frozen=True, order=True)
class RangeSpan:
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def as_tuple(self) -> Tuple[int, int]:
        return (self.start, self.end)


SpanLike = Union[RangeSpan, Tuple[int, int]]


def _as_span(item: SpanLike) -> RangeSpan:
    if isinstance(item, RangeSpan):
        return item
    start, end = item
    return RangeSpan(int(start), int(end))


def _validate(span: RangeSpan, limit: int) -> None:
    if span.start < 0 or span.start > span.end:
        raise RangeInvariantError(
            ErrorCode.RANGE_INVERTED_SPAN,
            f"span [{span.start}, {span.end}) is inverted or negative",
            details={"start": span.start, "end": span.end, "limit": limit},
        )
    if span.end > limit:
        raise RangeInvariantError(
            ErrorCode.RANGE_OUT_OF_BOUNDS,
            f"span [{span.start}, {span.end}) ends beyond buffer length {limit}",
            details={"start": span.start, "end": span.end, "limit": limit},
        )


class RangeSet:
    """
    Immutable, canonical set of half-open byte intervals within [0, limit).

    Build with merge(); the constructor is for already-canonical spans and
    re-checks canonical form.
    """

    __slots__ = ("_spans", "_limit")

    def __init__(self, spans: Iterable[RangeSpan], limit: int):
        spans = tuple(spans)
        prev_end = -1
        for s in spans:
            _validate(s, limit)
            if len(s) == 0 or s.start <= prev_end:
                raise RangeInvariantError(
                    ErrorCode.RANGE_INVERTED_SPAN,
                    f"span [{s.start}, {s.end}) breaks canonical order",
                    details={"start": s.start, "end": s.end},
                )
            prev_end = s.end
        self._spans = spans
        self._limit = limit

    @classmethod
    def empty(cls, limit: int) -> "RangeSet":
        return cls((), limit)

    @classmethod
    def full(cls, limit: int) -> "RangeSet":
        return cls((RangeSpan(0, limit),) if limit else (), limit)

    @property
    def spans(self) -> Tuple[RangeSpan, ...]:
        return self._spans

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def covered_bytes(self) -> int:
        return sum(len(s) for s in self._spans)

    def __iter__(self) -> Iterator[RangeSpan]:
        return iter(self._spans)

    def __len__(self) -> int:
        return len(self._spans)

    def __bool__(self) -> bool:
        return bool(self._spans)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RangeSet):
            return NotImplemented
        return self._spans == other._spans and self._limit == other._limit

    def __hash__(self) -> int:
        return hash((self._spans, self._limit))

    def __repr__(self) -> str:
        inner = ", ".join(f"[{s.start}, {s.end})" for s in self._spans)
        return f"RangeSet({inner}; limit={self._limit})"

    def to_pairs(self) -> List[Tuple[int, int]]:
        return [s.as_tuple() for s in self._spans]

    def contains(self, offset: int) -> bool:
        return any(s.start <= offset < s.end for s in self._spans)

    def union(self, other: "RangeSet") -> "RangeSet":
        self._same_buffer(other)
        return merge(self._spans + other._spans, self._limit)

    def subtract(self, other: "RangeSet") -> "RangeSet":
        """Bytes in self that are not in other."""
        self._same_buffer(other)
        out: List[RangeSpan] = []
        holes = other._spans
        i = 0
        for s in self._spans:
            cur = s.start
            while i < len(holes) and holes[i].end <= cur:
                i += 1
            j = i
            while j < len(holes) and holes[j].start < s.end:
                h = holes[j]
                if h.start > cur:
                    out.append(RangeSpan(cur, h.start))
                cur = max(cur, h.end)
                j += 1
            if cur < s.end:
                out.append(RangeSpan(cur, s.end))
        return RangeSet(out, self._limit)

    def complement(self) -> "RangeSet":
        return RangeSet.full(self._limit).subtract(self)

    def _same_buffer(self, other: "RangeSet") -> None:
        if other._limit != self._limit:
            raise RangeInvariantError(
                ErrorCode.RANGE_OUT_OF_BOUNDS,
                f"cannot combine range sets over buffers of length {self._limit} and {other._limit}",
            )


def merge(spans: Iterable[SpanLike], limit: int) -> RangeSet:
    """
    Sort, validate and coalesce spans into canonical form.

    Overlapping and adjacent spans are merged; empty spans are dropped since
    they cover no bytes. Raises RangeInvariantError on start > end, negative
    offsets, or end > limit.
    """
    checked = []
    for item in spans:
        span = _as_span(item)
        _validate(span, limit)
        if len(span):
            checked.append(span)
    checked.sort()

    merged: List[RangeSpan] = []
    for span in checked:
        if merged and span.start <= merged[-1].end:
            last = merged[-1]
            if span.end > last.end:
                merged[-1] = RangeSpan(last.start, span.end)
        else:
            merged.append(span)
    return RangeSet(merged, limit)
