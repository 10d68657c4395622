"""
Unit tests for the DisclosureService session loop.
"""
import asyncio
import json

import pytest

from disclosure.base.config import DisclosureConfig
from disclosure.contracts.enums import EventKind, EventType
from disclosure.event_bus import CollectingSink
from disclosure.grammar import RawMessage
from disclosure.service import DisclosureService

PAYMENT = b'{"state":"done","amount":"10.00","recipient":{"account":"123"},"internal_id":"x9"}'


def _response(body: bytes = PAYMENT, status: str = "200 OK") -> bytes:
    head = f"HTTP/1.1 {status}\r\nContent-Type: application/json\r\nContent-Length: {len(body)}\r\n\r\n"
    return head.encode("ascii") + body


def _message(**fields) -> str:
    body = {"server_uri": "https://api.example.com/v1/payments/42", "headers": ["Authorization: Bearer t0k"]}
    body.update(fields)
    return json.dumps(body)


class EchoSession:
    """Replays the request it was given and a canned response."""

    def __init__(self, sent: bytes, received: bytes):
        self._sent = sent
        self._received = received
        self.committed = None

    def sent_transcript(self):
        return RawMessage(self._sent)

    def received_transcript(self):
        return RawMessage(self._received)

    async def commit_disclosure(self, sent, recv):
        self.committed = (sent, recv)
        return "proof"


class FakeBackend:
    def __init__(self, received: bytes = None, error: Exception = None, delay: float = 0.0):
        self._received = _response() if received is None else received
        self._error = error
        self._delay = delay
        self.http_requests = []
        self.sessions = []

    async def open_session(self, request, http_request):
        self.http_requests.append(http_request)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        session = EchoSession(http_request, self._received)
        self.sessions.append(session)
        return session


async def _stream(*messages):
    for m in messages:
        yield m


@pytest.fixture
def sink():
    return CollectingSink()


class TestDisclosureService:

    @pytest.mark.asyncio
    async def test_successful_session(self, sink):
        backend = FakeBackend()
        service = DisclosureService(backend, sink=sink, config=DisclosureConfig())

        state = await service.handle(_message())

        assert state.succeeded
        assert state.request.server_uri == "https://api.example.com/v1/payments/42"
        assert sink.types() == [
            "session_started",
            "log",
            "log",
            "log",
            "parse_completed",
            "parse_completed",
            "resolve_completed",
            "resolve_completed",
            "disclosure_committed",
            "session_completed",
        ]
        assert len({e.session_id for e in sink.events}) == 1

        sent = backend.http_requests[0]
        assert sent.startswith(b"GET /v1/payments/42 HTTP/1.1\r\n")
        sent_ranges, recv_ranges = backend.sessions[0].committed
        assert b"api.example.com" not in b"".join(sent[s:e] for s, e in sent_ranges.to_pairs())
        received = _response()
        assert [received[s:e] for s, e in recv_ranges.to_pairs()] == [b"done", b"10.00", b"123"]

    @pytest.mark.asyncio
    async def test_default_port_notice_reaches_the_sink(self, sink):
        service = DisclosureService(FakeBackend(), sink=sink, config=DisclosureConfig())
        await service.handle(_message())

        logs = [e for e in sink.events if e.event_type == EventType.LOG]
        assert logs[0].message == "No port found, using default port 443"
        assert all(e.kind == EventKind.LOGGING for e in logs)
        assert logs[0].to_wire()["type"] == "Logging"

    @pytest.mark.asyncio
    async def test_explicit_port_has_no_default_port_notice(self, sink):
        service = DisclosureService(FakeBackend(), sink=sink, config=DisclosureConfig())
        await service.handle(_message(server_uri="https://api.example.com:8443/v1/payments/42"))

        messages = [e.message for e in sink.events if e.event_type == EventType.LOG]
        assert "No port found, using default port 443" not in messages
        assert any("api.example.com:8443" in m for m in messages)

    @pytest.mark.asyncio
    async def test_configured_verifier_is_the_default(self, sink):
        config = DisclosureConfig(verifier_address="10.9.9.9:7047")
        service = DisclosureService(FakeBackend(), sink=sink, config=config)

        state = await service.handle(_message())
        assert state.request.verifier_address == "10.9.9.9:7047"

        state = await service.handle(_message(verifier_address="10.0.0.1:9000"))
        assert state.request.verifier_address == "10.0.0.1:9000"

    @pytest.mark.asyncio
    async def test_bad_message_fails_the_session_only(self, sink):
        backend = FakeBackend()
        service = DisclosureService(backend, sink=sink, config=DisclosureConfig())

        states = await service.run(_stream(_message(server_uri="http://api.example.com/"), "garbage", _message()))

        assert [s.succeeded for s in states] == [False, False, True]
        failures = [e for e in sink.events if e.event_type.value == "session_failed"]
        assert [f.payload["code"] for f in failures] == ["CONFIG_002", "IPC_001"]
        assert failures[0].payload["category"] == "config"
        assert len(backend.http_requests) == 1

    @pytest.mark.asyncio
    async def test_connect_failure(self, sink):
        service = DisclosureService(FakeBackend(error=ConnectionRefusedError("refused")), sink=sink, config=DisclosureConfig())
        state = await service.handle(_message())
        assert state.error.code.value == "SESSION_001"
        assert sink.events[-1].to_wire()["type"] == "Error"

    @pytest.mark.asyncio
    async def test_handshake_failure(self, sink):
        service = DisclosureService(FakeBackend(error=RuntimeError("bad tls")), sink=sink, config=DisclosureConfig())
        state = await service.handle(_message())
        assert state.error.code.value == "SESSION_002"
        assert "bad tls" in state.error.message

    @pytest.mark.asyncio
    async def test_unexpected_status(self, sink):
        backend = FakeBackend(received=_response(b'{"error":"nope"}', status="403 Forbidden"))
        service = DisclosureService(backend, sink=sink, config=DisclosureConfig())
        state = await service.handle(_message())
        assert state.error.code.value == "SESSION_004"
        assert backend.sessions[0].committed is None

    @pytest.mark.asyncio
    async def test_malformed_response(self, sink):
        backend = FakeBackend(received=_response(b'{"state": }'))
        service = DisclosureService(backend, sink=sink, config=DisclosureConfig())
        state = await service.handle(_message())
        assert state.error.code.value == "PARSE_003"
        assert sink.events[-1].payload["details"]["rule"] == "json-value"

    @pytest.mark.asyncio
    async def test_session_timeout(self, sink):
        backend = FakeBackend(delay=1.0)
        service = DisclosureService(backend, sink=sink, config=DisclosureConfig(session_timeout=0.05))
        state = await service.handle(_message())
        assert state.error.code.value == "SESSION_005"

    @pytest.mark.asyncio
    async def test_per_session_ceiling(self, sink):
        service = DisclosureService(FakeBackend(), sink=sink, config=DisclosureConfig())
        state = await service.handle(_message(max_recv_data=64))
        assert state.error.code.value == "PARSE_004"
