"""
Transcript Disclosure Orchestrator (disclosure/orchestrator.py)

PURPOSE:
Turns the two transcripts of a finished prover session into the byte ranges
that get committed to the verifier.

FLOW (per session):
1. Read the sent and received transcripts from the prover session
2. Parse each with its grammar and build the typed document
3. Resolve the direction policy into a canonical RangeSet
4. Commit both RangeSets through the prover session

Any failure aborts the session before step 4. Nothing is ever committed from
a transcript that did not parse, or from a range set that failed validation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from disclosure.ast.documents import Document, Request, Response, load_request, load_response
from disclosure.base.config import LimitsConfig, ParserConfig, PolicyConfig
from disclosure.contracts.enums import Direction, EventType
from disclosure.contracts.events import (
    DisclosureCommittedPayload,
    ParseCompletedPayload,
    ResolveCompletedPayload,
    SessionEvent,
)
from disclosure.errors import DisclosureError, ErrorCode, SessionError
from disclosure.event_bus import EventSink, LoggingSink
from disclosure.grammar.nodes import RawMessage
from disclosure.ranges import RangeSet
from disclosure.session.backend import ProverSession

logger = logging.getLogger(__name__)


# ============================================================================
# Policy
# ============================================================================

@dataclass(frozen=True)
class DirectionPolicy:
    """
    Which bytes of one transcript are revealed.

    revealed = (whole transcript if reveal_remainder else include) - exclude

    Keypaths that match nothing in the document contribute nothing.
    """
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    reveal_remainder: bool = False

    def apply(self, document: Document) -> RangeSet:
        limit = len(document.raw)
        excluded = document.resolve_keypaths((), self.exclude)
        if self.reveal_remainder:
            base = RangeSet.full(limit)
        else:
            base = document.resolve_keypaths(self.include, ())
        return base.subtract(excluded)


@dataclass(frozen=True)
class DisclosurePolicy:
    sent: DirectionPolicy = field(default_factory=lambda: DirectionPolicy(exclude=("host",), reveal_remainder=True))
    received: DirectionPolicy = field(default_factory=DirectionPolicy)
    # None accepts any status
    expected_status: Optional[int] = 200

    @classmethod
    def from_config(cls, config: PolicyConfig) -> "DisclosurePolicy":
        return cls(
            sent=DirectionPolicy(exclude=tuple(config.request_hide), reveal_remainder=True),
            received=DirectionPolicy(include=tuple(config.response_reveal)),
            expected_status=config.expected_status,
        )


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class PreparedDisclosure:
    """Parsed documents and resolved ranges, before anything is committed."""
    request: Request
    response: Response
    sent_ranges: RangeSet
    recv_ranges: RangeSet


@dataclass(frozen=True)
class DisclosureResult:
    session_id: str
    sent_ranges: RangeSet
    recv_ranges: RangeSet
    status: int
    proof: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status,
            "sent_ranges": self.sent_ranges.to_pairs(),
            "recv_ranges": self.recv_ranges.to_pairs(),
        }


# ============================================================================
# Orchestrator
# ============================================================================

class TranscriptDisclosureOrchestrator:
    """
    Parse, resolve and commit for one prover session at a time.

    Holds no per-session state; a single instance can serve every session
    of a DisclosureService.
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        limits: Optional[LimitsConfig] = None,
        parser_config: Optional[ParserConfig] = None,
    ) -> None:
        self._sink = sink or LoggingSink()
        self._limits = limits or LimitsConfig()
        self._parser = parser_config or ParserConfig()

    def _emit(
        self,
        event_type: EventType,
        session_id: str,
        message: str,
        direction: Optional[Direction] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._sink.emit(SessionEvent(
            event_type=event_type,
            session_id=session_id,
            message=message,
            direction=direction,
            payload=payload or {},
        ))

    def _parsed(self, session_id: str, direction: Direction, document: Document) -> None:
        payload = ParseCompletedPayload(
            transcript_bytes=len(document.raw),
            header_count=len(document.headers),
            json_body=document.body is not None,
        )
        self._emit(
            EventType.PARSE_COMPLETED,
            session_id,
            f"parsed {len(document.raw)} bytes, {len(document.headers)} headers",
            direction,
            payload.model_dump(),
        )

    def _resolved(self, session_id: str, direction: Direction, ranges: RangeSet) -> None:
        payload = ResolveCompletedPayload(
            ranges=ranges.to_pairs(),
            revealed_bytes=ranges.covered_bytes,
            transcript_bytes=ranges.limit,
        )
        self._emit(
            EventType.RESOLVE_COMPLETED,
            session_id,
            f"revealing {ranges.covered_bytes} of {ranges.limit} bytes in {len(ranges)} ranges",
            direction,
            payload.model_dump(),
        )

    def prepare(
        self,
        sent: RawMessage,
        received: RawMessage,
        policy: DisclosurePolicy,
        session_id: str = "local",
        limits: Optional[LimitsConfig] = None,
    ) -> PreparedDisclosure:
        """
        Parse both transcripts and resolve the policy. Pure apart from events.

        Raises ParseError, AstError, ResolveError, RangeInvariantError, or
        SessionError when the response status is not the expected one.
        """
        limits = limits or self._limits
        depth = self._parser.max_json_depth

        request = load_request(sent, max_size=limits.max_sent_data, max_json_depth=depth)
        self._parsed(session_id, Direction.SENT, request)
        response = load_response(received, max_size=limits.max_recv_data, max_json_depth=depth)
        self._parsed(session_id, Direction.RECEIVED, response)

        if policy.expected_status is not None and response.status != policy.expected_status:
            raise SessionError(
                ErrorCode.SESSION_UNEXPECTED_STATUS,
                f"server answered {response.status} {response.reason}".rstrip(),
                details={"status": response.status, "expected": policy.expected_status},
            )

        sent_ranges = policy.sent.apply(request)
        self._resolved(session_id, Direction.SENT, sent_ranges)
        recv_ranges = policy.received.apply(response)
        self._resolved(session_id, Direction.RECEIVED, recv_ranges)

        logger.debug(f"[Orchestrator] {session_id}: sent {sent_ranges!r}, received {recv_ranges!r}")
        return PreparedDisclosure(request, response, sent_ranges, recv_ranges)

    async def disclose(
        self,
        session: ProverSession,
        policy: DisclosurePolicy,
        session_id: str = "local",
        limits: Optional[LimitsConfig] = None,
    ) -> DisclosureResult:
        prepared = self.prepare(
            session.sent_transcript(),
            session.received_transcript(),
            policy,
            session_id=session_id,
            limits=limits,
        )

        logger.info(
            f"[Orchestrator] {session_id}: committing {prepared.sent_ranges.covered_bytes} sent / "
            f"{prepared.recv_ranges.covered_bytes} received bytes"
        )
        try:
            proof = await session.commit_disclosure(prepared.sent_ranges, prepared.recv_ranges)
        except DisclosureError:
            raise
        except Exception as e:
            raise SessionError(
                ErrorCode.SESSION_DISCLOSURE_FAILED,
                f"commitment failed: {e}",
                details={"original_type": type(e).__name__},
            ) from e

        self._emit(
            EventType.DISCLOSURE_COMMITTED,
            session_id,
            "disclosure committed",
            payload=DisclosureCommittedPayload(
                sent_ranges=prepared.sent_ranges.to_pairs(),
                recv_ranges=prepared.recv_ranges.to_pairs(),
            ).model_dump(),
        )
        return DisclosureResult(
            session_id=session_id,
            sent_ranges=prepared.sent_ranges,
            recv_ranges=prepared.recv_ranges,
            status=prepared.response.status,
            proof=proof,
        )
