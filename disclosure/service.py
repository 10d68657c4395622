"""
Disclosure Service (disclosure/service.py)

PURPOSE:
The long-running loop: one session message in, one disclosure session run,
events out. A failed session is reported and the loop moves on to the next
message.

Every iteration works on its own SessionState. The service keeps no state
between sessions beyond its collaborators.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterable, Dict, List, Optional, Union

from disclosure.base.config import DisclosureConfig, LimitsConfig, get_config
from disclosure.contracts.enums import EventType
from disclosure.contracts.events import SessionEvent, SessionFailedPayload
from disclosure.contracts.models import SessionRequest
from disclosure.errors import DisclosureError, ErrorCode, SessionError, handle_error
from disclosure.event_bus import EventSink, LoggingSink
from disclosure.orchestrator import DisclosurePolicy, DisclosureResult, TranscriptDisclosureOrchestrator
from disclosure.session.backend import ProverBackend
from disclosure.session.request_builder import build_http_request, server_endpoint

logger = logging.getLogger(__name__)

Message = Union[str, bytes]


@dataclass
class SessionState:
    """Everything one loop iteration knows about its session."""
    session_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request: Optional[SessionRequest] = None
    result: Optional[DisclosureResult] = None
    error: Optional[DisclosureError] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.error is None


class DisclosureService:
    def __init__(
        self,
        backend: ProverBackend,
        sink: Optional[EventSink] = None,
        config: Optional[DisclosureConfig] = None,
        policy: Optional[DisclosurePolicy] = None,
    ) -> None:
        self._backend = backend
        self._sink = sink or LoggingSink()
        self._config = config or get_config()
        self._policy = policy or DisclosurePolicy.from_config(self._config.policy)
        self._orchestrator = TranscriptDisclosureOrchestrator(
            sink=self._sink,
            limits=self._config.limits,
            parser_config=self._config.parser,
        )

    def _emit(self, event_type: EventType, state: SessionState, message: str,
              payload: Optional[Dict[str, Any]] = None) -> None:
        self._sink.emit(SessionEvent(
            event_type=event_type,
            session_id=state.session_id,
            message=message[:4096],
            payload=payload or {},
        ))

    def _log(self, state: SessionState, message: str) -> None:
        logger.info(f"[Service] {state.session_id}: {message}")
        self._emit(EventType.LOG, state, message)

    async def run(self, messages: AsyncIterable[Message]) -> List[SessionState]:
        """Serve sessions until the message stream ends."""
        states: List[SessionState] = []
        async for message in messages:
            states.append(await self.handle(message))
        ok = sum(1 for s in states if s.succeeded)
        logger.info(f"[Service] Message stream closed after {len(states)} sessions ({ok} succeeded)")
        return states

    async def handle(self, message: Message) -> SessionState:
        """Run one session. Never raises for session-level failures."""
        state = SessionState(session_id=uuid.uuid4().hex[:16])
        self._emit(EventType.SESSION_STARTED, state, "session started")

        try:
            await asyncio.wait_for(self._run_session(state, message), timeout=self._config.session_timeout)
        except asyncio.TimeoutError:
            state.error = SessionError(
                ErrorCode.SESSION_TIMEOUT,
                f"session did not finish within {self._config.session_timeout}s",
            )
        except DisclosureError as e:
            state.error = e
        except Exception as e:
            logger.exception(f"[Service] {state.session_id}: unexpected failure")
            state.error = handle_error(e, "while running disclosure session")

        if state.error is not None:
            self._fail(state, state.error)
        return state

    async def _run_session(self, state: SessionState, message: Message) -> None:
        request = SessionRequest.from_message(message, default_verifier=self._config.verifier_address)
        state.request = request

        host, port = server_endpoint(request, on_notice=lambda notice: self._emit(EventType.LOG, state, notice))
        http_request = build_http_request(request)
        self._log(state, f"connecting to {host}:{port} via verifier {request.verifier_address}")

        try:
            session = await self._backend.open_session(request, http_request)
        except DisclosureError:
            raise
        except OSError as e:
            raise handle_error(e, "while opening prover session") from e
        except Exception as e:
            raise SessionError(
                ErrorCode.SESSION_HANDSHAKE_FAILED,
                f"while opening prover session: {e}",
                details={"original_type": type(e).__name__},
            ) from e
        self._log(state, f"prover session opened, request is {len(http_request)} bytes")

        limits = LimitsConfig(max_sent_data=request.max_sent_data, max_recv_data=request.max_recv_data)
        state.result = await self._orchestrator.disclose(
            session,
            self._policy,
            session_id=state.session_id,
            limits=limits,
        )
        self._emit(
            EventType.SESSION_COMPLETED,
            state,
            f"session completed with status {state.result.status}",
            payload=state.result.to_dict(),
        )

    def _fail(self, state: SessionState, error: DisclosureError) -> None:
        logger.warning(f"[Service] {state.session_id}: {error}")
        payload = SessionFailedPayload(code=error.code.value, category=error.category, details=error.details)
        self._emit(EventType.SESSION_FAILED, state, error.message, payload.model_dump())
