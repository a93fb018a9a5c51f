"""Tests for stickler.middleware.etag — ETag headers and 304 responses."""

import hashlib

from stickler.app import Application
from stickler.config import AppConfig, ETagConfig
from stickler.http.body import BufferedBody
from stickler.http.headers import Headers
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.etag import ETagMiddleware, parse_etags

HELLO_MD5 = '"5d41402abc4b2a76b9719d911017c592"'


def _handler(status: int = 200, body=("hel", "lo"), headers: dict[str, str] | None = None):
    async def handler(request: Request) -> Response:
        return Response(status=status, headers=Headers(headers or {}), body=body)

    return handler


def _request(if_none_match: str | None = None) -> Request:
    headers = Headers()
    if if_none_match is not None:
        headers.set("If-None-Match", if_none_match)
    return Request(headers=headers)


class TestParseEtags:
    def test_splits_and_trims(self) -> None:
        assert parse_etags(' "a" , "b",W/"c" ') == {'"a"', '"b"', 'W/"c"'}

    def test_empty(self) -> None:
        assert parse_etags(None) == set()
        assert parse_etags("") == set()


class TestETagMiddleware:
    async def test_sets_etag_and_buffers_body(self) -> None:
        mw = ETagMiddleware(_handler())
        response = await mw(_request())
        assert response.status == 200
        assert response.headers.get("etag") == HELLO_MD5
        assert isinstance(response.body, BufferedBody)
        assert await response.read() == b"hello"

    async def test_matching_tag_gives_304(self) -> None:
        mw = ETagMiddleware(_handler(headers={"Content-Type": "text/plain", "Content-Length": "5"}))
        response = await mw(_request(HELLO_MD5))
        assert response.status == 304
        assert await response.read() == b""
        assert response.headers.get("etag") == HELLO_MD5
        assert response.headers.get("content-type") == "text/plain"
        assert not response.headers.contains("content-length")

    async def test_match_among_several_tags(self) -> None:
        mw = ETagMiddleware(_handler())
        response = await mw(_request(f'"other", {HELLO_MD5} , "third"'))
        assert response.status == 304

    async def test_stale_tag_gives_full_response(self) -> None:
        mw = ETagMiddleware(_handler())
        response = await mw(_request('"stale"'))
        assert response.status == 200
        assert await response.read() == b"hello"

    async def test_non_200_passes_through_unread(self) -> None:
        consumed: list[str] = []

        def body():
            consumed.append("read")
            yield b"missing"

        mw = ETagMiddleware(_handler(status=404, body=body()))
        response = await mw(_request())
        assert response.status == 404
        assert not response.headers.contains("etag")
        assert consumed == []
        assert await response.read() == b"missing"

    async def test_digestible_body_not_read(self) -> None:
        class Precomputed:
            def __iter__(self):
                raise AssertionError("body should not be iterated")

            def digest(self) -> str:
                return "cafe"

        mw = ETagMiddleware(_handler(body=Precomputed()))
        response = await mw(_request())
        assert response.headers.get("etag") == '"cafe"'
        assert isinstance(response.body, Precomputed)

    async def test_async_body(self) -> None:
        async def body():
            yield b"hel"
            yield b"lo"

        response = await ETagMiddleware(_handler(body=body()))(_request())
        assert response.headers.get("etag") == HELLO_MD5

    async def test_empty_body_is_tagged(self) -> None:
        response = await ETagMiddleware(_handler(body=()))(_request())
        assert response.headers.get("etag") == '"d41d8cd98f00b204e9800998ecf8427e"'
        assert await response.read() == b""

    async def test_text_encoded_with_charset(self) -> None:
        handler = _handler(body=("é",), headers={"Content-Type": "text/plain; charset=latin-1"})
        response = await ETagMiddleware(handler)(_request())
        expected = hashlib.md5(b"\xe9").hexdigest()
        assert response.headers.get("etag") == f'"{expected}"'
        assert await response.read() == b"\xe9"

    async def test_injected_digest(self) -> None:
        app = Application(_handler(), config=AppConfig(etag=ETagConfig(digest=hashlib.sha256)))
        app.configure("etag")
        response = await app.handle(_request())
        assert response.headers.get("etag") == f'"{hashlib.sha256(b"hello").hexdigest()}"'


class TestPlainMappingHeaders:
    async def test_dict_headers_are_tagged(self) -> None:
        async def handler(request: Request) -> Response:
            return Response(headers={"Content-Type": "text/html"}, body=b"hello")

        response = await ETagMiddleware(handler)(_request(HELLO_MD5))
        assert response.status == 304
        assert response.headers.get("etag") == HELLO_MD5
        assert response.headers.get("content-type") == "text/html"
