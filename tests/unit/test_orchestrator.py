"""
Unit tests for TranscriptDisclosureOrchestrator and disclosure policies.
"""
import pytest

from disclosure.ast import load_response
from disclosure.base.config import LimitsConfig, PolicyConfig
from disclosure.errors import ErrorCode, ParseError, SessionError
from disclosure.event_bus import CollectingSink
from disclosure.grammar import RawMessage
from disclosure.orchestrator import DirectionPolicy, DisclosurePolicy, TranscriptDisclosureOrchestrator


class FakeProverSession:
    def __init__(self, sent: bytes, received: bytes, commit_error: Exception = None):
        self._sent = sent
        self._received = received
        self._commit_error = commit_error
        self.committed = None

    def sent_transcript(self):
        return RawMessage(self._sent)

    def received_transcript(self):
        return RawMessage(self._received)

    async def commit_disclosure(self, sent, recv):
        if self._commit_error is not None:
            raise self._commit_error
        self.committed = (sent, recv)
        return {"proof": "opaque"}


def _covered(raw: bytes, ranges):
    return [raw[s:e] for s, e in ranges.to_pairs()]


class TestDirectionPolicy:

    def test_allowlist(self, make_response, payment_body):
        raw = make_response(payment_body)
        policy = DirectionPolicy(include=("state", "recipient.account"))
        assert _covered(raw, policy.apply(load_response(raw))) == [b"done", b"123"]

    def test_denylist_reveals_the_rest(self, make_response, payment_body):
        raw = make_response(payment_body)
        resp = load_response(raw)
        ranges = DirectionPolicy(exclude=("amount",), reveal_remainder=True).apply(resp)
        amount = resp.body.get("amount").span
        assert ranges.to_pairs() == [(0, amount[0]), (amount[1], len(raw))]

    def test_exclude_carves_out_of_include(self, make_response):
        body = b'{"recipient":{"account":"123","name":"bob"}}'
        raw = make_response(body)
        ranges = DirectionPolicy(include=("recipient",), exclude=("recipient.account",)).apply(load_response(raw))
        assert b"".join(_covered(raw, ranges)) == b'{"account":"","name":"bob"}'

    def test_default_policy_mirrors_config(self):
        policy = DisclosurePolicy.from_config(PolicyConfig(response_reveal=("a",), request_hide=("host", "cookie")))
        assert policy.sent == DirectionPolicy(exclude=("host", "cookie"), reveal_remainder=True)
        assert policy.received == DirectionPolicy(include=("a",))
        assert policy.expected_status == 200


class TestOrchestrator:

    @pytest.mark.asyncio
    async def test_disclose_commits_policy_ranges(self, scenario_a_request, make_response, payment_body):
        received = make_response(payment_body)
        session = FakeProverSession(scenario_a_request, received)
        sink = CollectingSink()
        orchestrator = TranscriptDisclosureOrchestrator(sink=sink)
        policy = DisclosurePolicy.from_config(PolicyConfig())

        result = await orchestrator.disclose(session, policy, session_id="s1")

        host_start = scenario_a_request.index(b"example.com")
        assert result.sent_ranges.to_pairs() == [
            (0, host_start),
            (host_start + len(b"example.com"), len(scenario_a_request)),
        ]
        assert _covered(received, result.recv_ranges) == [b"done", b"10.00", b"123"]
        assert result.status == 200
        assert result.proof == {"proof": "opaque"}
        assert session.committed == (result.sent_ranges, result.recv_ranges)

        assert sink.types() == [
            "parse_completed",
            "parse_completed",
            "resolve_completed",
            "resolve_completed",
            "disclosure_committed",
        ]
        assert [e.direction.value for e in sink.events[:4]] == ["sent", "received", "sent", "received"]
        assert sink.events[3].payload["revealed_bytes"] == len(b"done10.00123")

    @pytest.mark.asyncio
    async def test_unexpected_status_aborts_before_commit(self, scenario_a_request, make_response):
        session = FakeProverSession(scenario_a_request, make_response(b"{}", status="404 Not Found"))
        orchestrator = TranscriptDisclosureOrchestrator(sink=CollectingSink())

        with pytest.raises(SessionError) as exc_info:
            await orchestrator.disclose(session, DisclosurePolicy())
        assert exc_info.value.code == ErrorCode.SESSION_UNEXPECTED_STATUS
        assert exc_info.value.details["status"] == 404
        assert session.committed is None

    @pytest.mark.asyncio
    async def test_any_status_when_not_pinned(self, scenario_a_request, make_response):
        session = FakeProverSession(scenario_a_request, make_response(b"{}", status="404 Not Found"))
        result = await TranscriptDisclosureOrchestrator(sink=CollectingSink()).disclose(
            session, DisclosurePolicy(expected_status=None)
        )
        assert result.status == 404

    @pytest.mark.asyncio
    async def test_malformed_response_is_never_committed(self, scenario_a_request, make_response):
        session = FakeProverSession(scenario_a_request, make_response(b'{"state": }'))
        sink = CollectingSink()

        with pytest.raises(ParseError):
            await TranscriptDisclosureOrchestrator(sink=sink).disclose(session, DisclosurePolicy())
        assert session.committed is None
        assert "disclosure_committed" not in sink.types()

    @pytest.mark.asyncio
    async def test_transcript_over_ceiling(self, scenario_a_request, make_response, payment_body):
        session = FakeProverSession(scenario_a_request, make_response(payment_body))
        orchestrator = TranscriptDisclosureOrchestrator(sink=CollectingSink())

        with pytest.raises(ParseError) as exc_info:
            await orchestrator.disclose(session, DisclosurePolicy(), limits=LimitsConfig(max_recv_data=32))
        assert exc_info.value.code == ErrorCode.PARSE_INPUT_TOO_LARGE

    @pytest.mark.asyncio
    async def test_commit_failure_is_a_session_error(self, scenario_a_request, make_response, payment_body):
        session = FakeProverSession(scenario_a_request, make_response(payment_body), commit_error=RuntimeError("mpc aborted"))
        sink = CollectingSink()

        with pytest.raises(SessionError) as exc_info:
            await TranscriptDisclosureOrchestrator(sink=sink).disclose(session, DisclosurePolicy())
        assert exc_info.value.code == ErrorCode.SESSION_DISCLOSURE_FAILED
        assert "mpc aborted" in exc_info.value.message
        assert "disclosure_committed" not in sink.types()

    def test_prepare_without_a_session(self, scenario_a_request, make_response, payment_body):
        received = make_response(payment_body)
        prepared = TranscriptDisclosureOrchestrator(sink=CollectingSink()).prepare(
            RawMessage(scenario_a_request),
            RawMessage(received),
            DisclosurePolicy(received=DirectionPolicy(include=("amount",))),
        )
        assert prepared.request.host == "example.com"
        assert _covered(received, prepared.recv_ranges) == [b"10.00"]
