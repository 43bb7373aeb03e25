import httpx
import pytest

from conftest import FakeTransport, collect
from core.exceptions import InvalidTarget, MissingTarget, UpstreamUnreachable
from core.headers import HeaderBuilder
from core.request_types import Err, InboundRequest, Ok
from services.proxy_service import ProxyService


def make_request(path="/foo.com/page", query="", method="GET", headers=None, body=None):
    return InboundRequest(
        method=method,
        scheme="https",
        proxy_host="proxy.test",
        path=path,
        query=query,
        headers=httpx.Headers(headers or {}),
        body=body,
    )


async def body_of(*chunks: bytes):
    for chunk in chunks:
        yield chunk


def make_service(transport, sink):
    return ProxyService(transport=transport, header_builder=HeaderBuilder(sink))


@pytest.mark.asyncio
async def test_html_body_rewritten(sink):
    transport = FakeTransport(
        headers={"Content-Type": "text/html; charset=utf-8", "Content-Length": "40"},
        body=b'<a href="/a">x</a> https://foo.com/b',
    )

    outcome = await make_service(transport, sink).handle(make_request())

    assert isinstance(outcome, Ok)
    response = outcome.response
    assert response.content == (
        b'<a href="https://proxy.test/foo.com/a">x</a> https://proxy.test/foo.com/b'
    )
    assert response.stream is None
    assert "content-length" not in response.headers
    assert response.headers["access-control-allow-origin"] == "*"
    assert transport.closed >= 1
    assert outcome.target.url == "https://foo.com/page"


@pytest.mark.asyncio
async def test_html_charset_round_trips(sink):
    transport = FakeTransport(
        headers={"Content-Type": "text/html; charset=iso-8859-1"},
        body='café <a href="/x">'.encode("latin-1"),
        encoding="iso-8859-1",
    )

    outcome = await make_service(transport, sink).handle(make_request())

    assert outcome.response.content == 'café <a href="https://proxy.test/foo.com/x">'.encode("latin-1")


@pytest.mark.asyncio
async def test_non_html_streams_through_unchanged(sink):
    payload = b'{"url": "https://foo.com/x", "href": "/a"}'
    transport = FakeTransport(headers={"Content-Type": "application/json"}, body=payload)

    outcome = await make_service(transport, sink).handle(make_request())

    response = outcome.response
    assert response.content is None
    assert await collect(response.stream) == payload
    assert response.close is not None


@pytest.mark.asyncio
async def test_missing_target_skips_transport(sink):
    transport = FakeTransport()

    outcome = await make_service(transport, sink).handle(make_request(path="/"))

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, MissingTarget)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_invalid_target(sink):
    transport = FakeTransport()

    outcome = await make_service(transport, sink).handle(make_request(path="/foo.com:x/"))

    assert isinstance(outcome.error, InvalidTarget)
    assert transport.requests == []


@pytest.mark.asyncio
async def test_transport_failure_is_err(sink):
    transport = FakeTransport(error=UpstreamUnreachable("boom", target_url="https://foo.com/page"))

    outcome = await make_service(transport, sink).handle(make_request())

    assert isinstance(outcome, Err)
    assert outcome.error.message == "boom"
    assert outcome.error.status_code == 500


@pytest.mark.asyncio
async def test_failure_while_buffering_html(sink):
    class BrokenBodyTransport(FakeTransport):
        async def send(self, request):
            response = await super().send(request)

            async def broken():
                yield b"<html>"
                raise UpstreamUnreachable("connection reset")

            response.body = broken()
            return response

    transport = BrokenBodyTransport(headers={"Content-Type": "text/html"})

    outcome = await make_service(transport, sink).handle(make_request())

    assert isinstance(outcome.error, UpstreamUnreachable)
    assert outcome.error.target_url == "https://foo.com/page"
    assert transport.closed >= 1


@pytest.mark.asyncio
async def test_head_html_keeps_headers_and_skips_rewrite(sink):
    transport = FakeTransport(headers={"Content-Type": "text/html; charset=utf-8", "Content-Length": "40"})

    outcome = await make_service(transport, sink).handle(make_request(method="HEAD"))

    response = outcome.response
    assert response.content is None
    assert response.headers["content-length"] == "40"
    assert await collect(response.stream) == b""
    assert transport.requests[0].method == "HEAD"


@pytest.mark.asyncio
async def test_unexpected_transport_exception_is_err(sink):
    transport = FakeTransport(error=RuntimeError("bad header bytes"))

    outcome = await make_service(transport, sink).handle(make_request())

    assert isinstance(outcome, Err)
    assert outcome.error.status_code == 500
    assert outcome.error.message == "bad header bytes"
    assert outcome.error.target_url == "https://foo.com/page"


@pytest.mark.asyncio
async def test_outbound_request_prepared(sink):
    transport = FakeTransport()
    request = make_request(
        query="q=1",
        headers={
            "Host": "proxy.test",
            "X-Forwarded-For": "10.0.0.1",
            "Accept": "application/json",
            "Authorization": "Bearer t",
        },
    )

    await make_service(transport, sink).handle(request)

    sent = transport.requests[0]
    assert sent.method == "GET"
    assert sent.target.url == "https://foo.com/page?q=1"
    assert sent.headers["host"] == "foo.com"
    assert sent.headers["referer"] == "https://foo.com/"
    assert sent.headers["authorization"] == "Bearer t"
    assert "x-forwarded-for" not in sent.headers


@pytest.mark.asyncio
async def test_request_body_passed_through(sink):
    transport = FakeTransport()
    request = make_request(
        method="POST",
        headers={"Content-Length": "11"},
        body=body_of(b"hello ", b"world"),
    )

    await make_service(transport, sink).handle(request)

    assert transport.sent_bodies == [b"hello world"]


@pytest.mark.asyncio
async def test_bodyless_request_sends_no_body(sink):
    transport = FakeTransport()

    await make_service(transport, sink).handle(make_request(body=body_of(b"")))

    assert transport.sent_bodies == [None]


@pytest.mark.asyncio
async def test_redirect_status_and_location(sink):
    transport = FakeTransport(
        status_code=302,
        reason_phrase="Found",
        headers={"Location": "https://example.com/a?b=1"},
    )

    outcome = await make_service(transport, sink).handle(make_request())

    assert outcome.response.status_code == 302
    assert outcome.response.headers["location"] == "https://proxy.test/example.com/a?b=1"
