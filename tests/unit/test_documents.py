"""
Unit tests for the typed Request / Response documents.
"""
import pytest

from disclosure.ast import build_request, load_request, load_response
from disclosure.errors import AstError, ErrorCode, ParseError
from disclosure.grammar import NodeKind, RawMessage, parse_response


class TestRequestDocument:

    def test_request_fields(self, scenario_a_request):
        req = load_request(scenario_a_request)
        assert (req.method, req.target, req.version) == ("GET", "/a", "HTTP/1.1")
        assert [h.name for h in req.headers] == ["Host", "Connection"]
        assert req.body is None
        assert req.body_span == (len(scenario_a_request), len(scenario_a_request))

    def test_header_lookup_is_case_insensitive(self, scenario_a_request):
        req = load_request(scenario_a_request)
        assert req.header("CONNECTION").value == "close"
        assert req.header("x-missing") is None

    def test_host_comes_from_host_header(self, scenario_a_request):
        req = load_request(scenario_a_request)
        assert req.host == "example.com"
        start, end = req.host_span
        assert scenario_a_request[start:end] == b"example.com"
        assert req.synthetic_field("host") == req.host_span
        assert req.synthetic_field("path") is None

    def test_host_falls_back_to_absolute_form_authority(self):
        raw = b"GET https://user@api.example.com:8443/v1?q=1 HTTP/1.1\r\n\r\n"
        req = load_request(raw)
        assert req.host == "api.example.com:8443"

    def test_origin_form_without_host_header_has_no_host(self):
        req = load_request(b"GET / HTTP/1.1\r\nAccept: */*\r\n\r\n")
        assert req.host is None
        assert req.host_span is None

    def test_repeated_host_header_is_ambiguous(self):
        raw = b"GET / HTTP/1.1\r\nHost: a.example\r\nhost: b.example\r\n\r\n"
        with pytest.raises(AstError) as exc_info:
            load_request(raw)
        assert exc_info.value.code == ErrorCode.AST_AMBIGUOUS_HOST

    def test_repeated_header_keeps_every_occurrence(self):
        raw = b"GET / HTTP/1.1\r\nHost: h\r\nX-Tag: one\r\nx-tag: two\r\n\r\n"
        req = load_request(raw)
        assert [h.value for h in req.headers_named("X-TAG")] == ["one", "two"]
        assert req.header("x-tag").value == "one"

    def test_response_tree_is_not_a_request(self, make_response):
        raw = RawMessage(make_response(b"{}"))
        with pytest.raises(AstError) as exc_info:
            build_request(parse_response(raw), raw)
        assert exc_info.value.code == ErrorCode.AST_SHAPE_MISMATCH


class TestResponseDocument:

    def test_response_fields(self, make_response, payment_body):
        raw = make_response(payment_body, status="200 OK")
        resp = load_response(raw)
        assert resp.status == 200
        assert resp.reason == "OK"
        assert resp.version == "HTTP/1.1"
        assert resp.header("content-length").value == str(len(payment_body))
        assert resp.synthetic_field("host") is None

    def test_json_body_navigation(self, make_response, payment_body):
        raw = make_response(payment_body)
        resp = load_response(raw)
        body = resp.body
        assert body.is_object
        assert body.keys() == ["state", "amount", "recipient"]

        state = body.get("state")
        assert state.kind == NodeKind.JSON_STRING
        assert raw[state.span[0]:state.span[1]] == b"done"

        recipient = body.get("recipient")
        assert raw[recipient.span[0]:recipient.span[1]] == b'{"account":"123"}'
        assert recipient.get("account").token == "123"

    def test_lookup_is_exact_and_case_sensitive(self, make_response, payment_body):
        resp = load_response(make_response(payment_body))
        assert resp.body.get("State") is None
        assert resp.body.get("state").get("x") is None

    def test_array_body(self, make_response):
        raw = make_response(b'[{"a": 1}, 2]')
        resp = load_response(raw)
        assert resp.body.kind == NodeKind.JSON_ARRAY
        assert len(resp.body.items) == 2
        assert resp.body.get("a") is None

    def test_non_json_body(self, make_response):
        raw = make_response(b"hello", headers=(("Content-Type", "text/plain"),))
        resp = load_response(raw)
        assert resp.body is None
        assert raw[resp.body_span[0]:resp.body_span[1]] == b"hello"

    def test_non_ascii_field_names_are_decoded(self, make_response):
        raw = make_response('{"café": "ok"}'.encode("utf-8"))
        resp = load_response(raw)
        assert resp.body.keys() == ["café"]

    def test_load_response_propagates_parse_errors(self, make_response):
        with pytest.raises(ParseError):
            load_response(make_response(b'{"state": }'))

    def test_documents_are_deterministic(self, make_response, payment_body):
        raw = make_response(payment_body)
        assert load_response(raw) == load_response(raw)
