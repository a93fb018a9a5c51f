"""Tests for stickler.middleware.params — query and form parameters."""

import pytest

from stickler.app import Application
from stickler.config import AppConfig, MultipartConfig
from stickler.errors import MalformedMultipartError
from stickler.http.body import BytesSource
from stickler.http.headers import Headers
from stickler.http.multipart import UploadFile, spooled_sink
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.middleware.params import ParamsMiddleware

MULTIPART = (
    b"--X\r\n"
    b'Content-Disposition: form-data; name="color"\r\n\r\n'
    b"red\r\n"
    b"--X\r\n"
    b'Content-Disposition: form-data; name="doc"; filename="a.txt"\r\n'
    b"Content-Type: text/plain\r\n\r\n"
    b"hi\r\n"
    b"--X--\r\n"
)


async def _echo(request: Request) -> Response:
    return Response.text("ok")


def _request(query: bytes = b"", content_type: str | None = None, body: bytes = b"") -> Request:
    headers = Headers()
    if content_type is not None:
        headers.set("Content-Type", content_type)
    return Request(method="POST", headers=headers, query_string=query, body=BytesSource(body))


class TestQueryString:
    async def test_pairs(self) -> None:
        request = _request(b"q=search&page=2")
        await ParamsMiddleware(_echo)(request)
        assert request.params == {"q": "search", "page": "2"}

    async def test_repeated_and_blank(self) -> None:
        request = _request(b"tag=a&tag=b&empty=&tag=c")
        await ParamsMiddleware(_echo)(request)
        assert request.params == {"tag": ["a", "b", "c"], "empty": ""}

    async def test_percent_decoding(self) -> None:
        request = _request(b"name=J%C3%BCrgen+M")
        await ParamsMiddleware(_echo)(request)
        assert request.params == {"name": "Jürgen M"}


class TestUrlEncodedBody:
    async def test_body_pairs_follow_query(self) -> None:
        request = _request(b"a=1", "application/x-www-form-urlencoded", b"a=2&b=3")
        await ParamsMiddleware(_echo)(request)
        assert request.params == {"a": ["1", "2"], "b": "3"}
        assert request.body_consumed

    async def test_charset(self) -> None:
        request = _request(
            content_type="application/x-www-form-urlencoded; charset=latin-1",
            body=b"city=Z\xfcrich",
        )
        await ParamsMiddleware(_echo)(request)
        assert request.params == {"city": "Zürich"}

    async def test_consumed_body_not_reparsed(self) -> None:
        request = _request(content_type="application/x-www-form-urlencoded", body=b"a=1")
        request.body_consumed = True
        await ParamsMiddleware(_echo)(request)
        assert request.params == {}

    async def test_other_content_type_ignored(self) -> None:
        request = _request(content_type="application/json", body=b'{"a": 1}')
        await ParamsMiddleware(_echo)(request)
        assert request.params == {}
        assert not request.body_consumed


class TestMultipartBody:
    async def test_fields_and_files(self) -> None:
        request = _request(b"color=blue", "multipart/form-data; boundary=X", MULTIPART)
        await ParamsMiddleware(_echo)(request)
        assert request.params["color"] == ["blue", "red"]
        assert request.params["doc"] == UploadFile(
            name="doc", filename="a.txt", content_type="text/plain", value=b"hi"
        )
        assert request.body_consumed

    async def test_uses_multipart_config(self) -> None:
        config = AppConfig(multipart=MultipartConfig(buffer_size=96, sink_factory=spooled_sink))
        mw = ParamsMiddleware(_echo, Application(config=config))
        assert mw.config.buffer_size == 96
        request = _request(content_type="multipart/form-data; boundary=X", body=MULTIPART)
        await mw(request)
        assert request.params["doc"].value == b"hi"

    async def test_malformed_propagates(self) -> None:
        request = _request(content_type="multipart/form-data; boundary=X", body=b"--X\r\nbroken")
        with pytest.raises(MalformedMultipartError):
            await ParamsMiddleware(_echo)(request)

    async def test_missing_boundary(self) -> None:
        request = _request(content_type="multipart/form-data", body=MULTIPART)
        await ParamsMiddleware(_echo)(request)
        assert request.params == {}
