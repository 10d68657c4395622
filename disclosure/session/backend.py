"""
Seams to the MPC-TLS prover.

The protected channel, the handshake with the verifier and the commitment
scheme all live behind these protocols. The pipeline only reads the two
transcripts and hands back the byte ranges to reveal.
"""

from __future__ import annotations

from typing import Any, Protocol

from disclosure.contracts.models import SessionRequest
from disclosure.grammar.nodes import RawMessage
from disclosure.ranges import RangeSet


class ProverSession(Protocol):
    """One completed request/response exchange, not yet disclosed."""

    def sent_transcript(self) -> RawMessage: ...

    def received_transcript(self) -> RawMessage: ...

    async def commit_disclosure(self, sent: RangeSet, recv: RangeSet) -> Any: ...


class ProverBackend(Protocol):
    """
    Connects to the verifier and the server and sends http_request through
    the protected channel. Connect or handshake failures surface as
    SessionError (or an OSError the service converts).
    """

    async def open_session(self, request: SessionRequest, http_request: bytes) -> ProverSession: ...
