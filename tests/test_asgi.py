"""End-to-end tests through the ASGI interface with TestClient."""

import gzip
import logging

import pytest

from stickler.app import Application
from stickler.config import AppConfig, MultipartConfig
from stickler.http.headers import Headers
from stickler.http.request import Request
from stickler.http.response import Response
from stickler.testing import TestClient

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


def _page_app() -> Application:
    app = Application()
    app.configure("params", "cookies", "etag", "gzip")

    @app.handler
    async def index(request: Request) -> Response:
        name = request.params.get("name", "world")
        theme = (request.cookies or {}).get("theme", "light")
        return Response.html("<p>Hello, ", name, "</p>", f"<p>{theme}</p>" * 20)

    return app


class TestRequestConversion:
    async def test_scope_becomes_request(self) -> None:
        seen: list[Request] = []

        async def handler(request: Request) -> Response:
            seen.append(request)
            return Response.text("ok")

        async with TestClient(Application(handler)) as client:
            response = await client.get("/items?page=2", headers={"X-Token": "abc"})

        assert response.status == 200
        assert response.text == "ok"
        request = seen[0]
        assert request.method == "GET"
        assert request.path == "/items"
        assert request.query_string == b"page=2"
        assert request.url == "/items?page=2"
        assert request.headers.get("x-token") == "abc"
        assert request.client == ("127.0.0.1", 0)

    async def test_body_read_from_receive(self) -> None:
        async def handler(request: Request) -> Response:
            data = await request.read()
            return Response.text(str(len(data)), ":", data.decode())

        async with TestClient(Application(handler), chunk_size=3) as client:
            response = await client.post("/", body=b"hello world")

        assert response.text == "11:hello world"


class TestConditionalGet:
    async def test_etag_roundtrip(self) -> None:
        async with TestClient(_page_app()) as client:
            first = await client.get("/")
            etag = first.headers.get("etag")
            second = await client.get("/", headers={"If-None-Match": etag})

        assert first.status == 200
        assert etag is not None
        assert second.status == 304
        assert second.body == b""
        assert second.headers.get("etag") == etag

    async def test_different_params_different_etag(self) -> None:
        async with TestClient(_page_app()) as client:
            a = await client.get("/?name=a")
            b = await client.get("/?name=b")
        assert a.headers.get("etag") != b.headers.get("etag")


class TestCompression:
    async def test_gzip_when_accepted(self) -> None:
        async with TestClient(_page_app()) as client:
            response = await client.get("/?name=Ada", headers={"Accept-Encoding": "gzip"})

        assert response.headers.get("content-encoding") == "gzip"
        html = gzip.decompress(response.body).decode()
        assert html.startswith("<p>Hello, Ada</p>")

    async def test_cookies_reach_handler(self) -> None:
        async with TestClient(_page_app()) as client:
            response = await client.get("/", headers={"Cookie": "theme=dark"})
        assert "<p>dark</p>" in response.text

    async def test_identity_when_not_accepted(self) -> None:
        async with TestClient(_page_app()) as client:
            response = await client.get("/")
        assert not response.headers.contains("content-encoding")
        assert response.text.startswith("<p>Hello, world</p>")


class TestMultipartUpload:
    @pytest.mark.parametrize("chunk_size", [None, 1, 17])
    async def test_upload(self, chunk_size: int | None) -> None:
        config = AppConfig(multipart=MultipartConfig(buffer_size=128))
        app = Application(config=config)
        app.configure("params")

        @app.handler
        async def upload(request: Request) -> Response:
            doc = request.params["doc"]
            return Response.text(request.params["color"], "|", doc.filename, "|", doc.value.decode())

        async with TestClient(app, chunk_size=chunk_size) as client:
            response = await client.post(
                "/upload",
                headers={"Content-Type": "multipart/form-data; boundary=X"},
                body=MULTIPART,
            )

        assert response.status == 200
        assert response.text == "red|a.txt|hi"

    async def test_malformed_upload_is_400(self) -> None:
        app = Application(lambda request: Response.text("unreachable"))
        app.configure("params")

        async with TestClient(app) as client:
            response = await client.post(
                "/upload",
                headers={"Content-Type": "multipart/form-data; boundary=X"},
                body=MULTIPART[:-9],
            )

        assert response.status == 400
        assert response.text.startswith("Bad Request:")


class TestErrors:
    async def test_exception_is_500(self, caplog: pytest.LogCaptureFixture) -> None:
        async def handler(request: Request) -> Response:
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="stickler.server"):
            async with TestClient(Application(handler)) as client:
                response = await client.get("/")

        assert response.status == 500
        assert response.text == "Internal Server Error"
        assert "500 GET /" in caplog.text

    async def test_debug_shows_traceback(self) -> None:
        async def handler(request: Request) -> Response:
            raise RuntimeError("boom")

        async with TestClient(Application(handler, AppConfig(debug=True))) as client:
            response = await client.get("/")

        assert response.status == 500
        assert "RuntimeError: boom" in response.text

    async def test_unencodable_header_is_500(self, caplog: pytest.LogCaptureFixture) -> None:
        async def handler(request: Request) -> Response:
            return Response(headers={"X-Weather": "☃"}, body=b"snow")

        with caplog.at_level(logging.ERROR, logger="stickler.server"):
            async with TestClient(Application(handler)) as client:
                response = await client.get("/")

        assert response.status == 500
        assert response.headers.get("x-weather") is None
        assert "500 GET /" in caplog.text

    async def test_multi_value_headers(self) -> None:
        async def handler(request: Request) -> Response:
            headers = Headers()
            headers.add("Set-Cookie", "a=1")
            headers.add("Set-Cookie", "b=2")
            return Response(headers=headers, body=b"")

        async with TestClient(Application(handler)) as client:
            response = await client.get("/")

        assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]

    async def test_non_http_scope_ignored(self) -> None:
        sent: list[dict] = []

        async def send(message: dict) -> None:
            sent.append(message)

        async def receive() -> dict:
            return {"type": "lifespan.startup"}

        app = Application(lambda request: Response.text("x"))
        await app({"type": "lifespan"}, receive, send)
        assert sent == []
