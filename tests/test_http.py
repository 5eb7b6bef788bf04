"""Tests for perch.http and perch.realtime — request/response primitives and SSE framing."""

from perch.http.cookies import parse_cookies
from perch.http.headers import Headers
from perch.http.query import QueryParams
from perch.http.request import Request
from perch.http.response import Response
from perch.realtime.events import SSEEvent
from perch.testing import parse_sse_frames


def make_request(headers: list[tuple[bytes, bytes]], query: bytes = b"") -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": query}
    return Request.from_asgi(scope)


# ── Headers ──────────────────────────────────────────────────────────────


class TestHeaders:
    def test_case_insensitive(self) -> None:
        headers = Headers(((b"Content-Type", b"text/html"),))
        assert headers["content-type"] == "text/html"
        assert "CONTENT-TYPE" in headers

    def test_multiple_values(self) -> None:
        headers = Headers(((b"accept", b"a"), (b"Accept", b"b")))
        assert headers.get("accept") == "a"
        assert headers.get_list("accept") == ["a", "b"]

    def test_missing(self) -> None:
        assert Headers().get("x", "default") == "default"


# ── Query and cookies ────────────────────────────────────────────────────


class TestQueryParams:
    def test_values(self) -> None:
        query = QueryParams(b"a=1&a=2&b=")
        assert query["a"] == "1"
        assert query.get_list("a") == ["1", "2"]
        assert query.get("b") == ""
        assert query.get("c") is None

    def test_raw(self) -> None:
        assert QueryParams(b"x=%20y").raw == "x=%20y"


class TestCookies:
    def test_parse(self) -> None:
        assert parse_cookies("perch-lang=fr; theme = dark") == {"perch-lang": "fr", "theme": "dark"}

    def test_empty(self) -> None:
        assert parse_cookies("") == {}


# ── Request ──────────────────────────────────────────────────────────────


class TestRequest:
    def test_accept_language_first_tag(self) -> None:
        request = make_request([(b"accept-language", b"fr-CH, fr;q=0.9, en;q=0.8")])
        assert request.accept_language == "fr-CH"

    def test_accept_language_missing(self) -> None:
        assert make_request([]).accept_language is None

    def test_url(self) -> None:
        assert make_request([], b"a=1").url == "/?a=1"

    def test_cookies(self) -> None:
        request = make_request([(b"cookie", b"perch-lang=de")])
        assert request.cookies == {"perch-lang": "de"}

    def test_built_from_scope_alone(self) -> None:
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/docs",
            "headers": [],
            "server": ["testserver", 80],
        }
        request = Request.from_asgi(scope)
        assert request.path == "/docs"
        assert request.server == ("testserver", 80)
        assert request.client is None
        assert not hasattr(request, "body")


# ── Response ─────────────────────────────────────────────────────────────


class TestResponse:
    def test_transformations_return_new_values(self) -> None:
        base = Response("hello")
        changed = base.with_status(201).with_header("X-Test", "1").with_content_type("text/plain")
        assert base.status == 200
        assert changed.status == 201
        assert changed.header("x-test") == "1"
        assert changed.content_type == "text/plain"

    def test_with_headers_mapping(self) -> None:
        response = Response().with_headers({"A": "1"}).with_headers((("B", "2"),))
        assert response.headers == (("A", "1"), ("B", "2"))

    def test_body_conversions(self) -> None:
        assert Response("é").body_bytes == "é".encode()
        assert Response(b"abc").text == "abc"


# ── SSE framing ──────────────────────────────────────────────────────────


class TestSSE:
    def test_encode(self) -> None:
        assert SSEEvent(data="PING").encode() == "data: PING\n\n"

    def test_multiline(self) -> None:
        assert SSEEvent(data="a\nb", event="x").encode() == "event: x\ndata: a\ndata: b\n\n"

    def test_from_value(self) -> None:
        assert SSEEvent.from_value("RELOAD").data == "RELOAD"
        assert SSEEvent.from_value({"a": 1}).data == '{"a": 1}'

    def test_parse_frames(self) -> None:
        events, heartbeats = parse_sse_frames("data: RELOAD\n\n: heartbeat\n\ndata: PING\n\n")
        assert [event.data for event in events] == ["RELOAD", "PING"]
        assert heartbeats == 1
