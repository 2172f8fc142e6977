import json

import httpx
import pytest

from courier.config import Settings
from courier.errors import TransportError
from courier.transport import HttpxTransport, parse_set_cookie


def make_transport(handler, **settings):
    return HttpxTransport(Settings(**settings), transport=httpx.MockTransport(handler))


class TestDispatch:
    async def test_json_response(self):
        def handler(request):
            return httpx.Response(200, json={"id": 1}, headers={"X-Req": request.method})

        async with make_transport(handler) as transport:
            response = await transport.dispatch("get", "https://api.test/users/1", {})

        assert response.success
        assert response.status == 200
        assert response.status_text == "OK"
        assert response.data == {"id": 1}
        assert response.headers["x-req"] == "GET"
        assert response.size > 0

    async def test_text_response(self):
        async with make_transport(lambda request: httpx.Response(200, text="plain")) as transport:
            response = await transport.dispatch("GET", "https://api.test/", {})
        assert response.data == "plain"

    async def test_dict_body_is_sent_as_json(self):
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers.get("content-type")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={})

        async with make_transport(handler) as transport:
            await transport.dispatch("POST", "https://api.test/users", {}, {"name": "alice"})

        assert seen == {"content_type": "application/json", "body": {"name": "alice"}}

    async def test_string_body_keeps_explicit_content_type(self):
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers.get("content-type")
            seen["body"] = request.content
            return httpx.Response(200)

        async with make_transport(handler) as transport:
            await transport.dispatch("PUT", "https://api.test/x", {"Content-Type": "text/plain"}, "hello")

        assert seen == {"content_type": "text/plain", "body": b"hello"}

    async def test_body_is_dropped_for_get(self):
        seen = {}

        def handler(request):
            seen["body"] = request.content
            return httpx.Response(200)

        async with make_transport(handler) as transport:
            await transport.dispatch("GET", "https://api.test/x", {}, {"ignored": True})

        assert seen["body"] == b""

    async def test_error_status_raises_with_details(self):
        def handler(request):
            return httpx.Response(
                401, json={"error": "denied"}, headers={"WWW-Authenticate": 'Digest realm="r", nonce="n"'}
            )

        async with make_transport(handler) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.dispatch("GET", "https://api.test/secret", {})

        error = exc_info.value
        assert error.status == 401
        assert error.status_text == "Unauthorized"
        assert error.data == {"error": "denied"}
        assert error.headers["www-authenticate"].startswith("Digest")
        assert error.message == "HTTP Error 401"

    async def test_network_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_transport(handler) as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.dispatch("GET", "https://api.test/", {})

        assert exc_info.value.status is None
        assert "refused" in exc_info.value.message

    async def test_network_errors_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"ok": True})

        async with make_transport(handler, retries=1) as transport:
            response = await transport.dispatch("GET", "https://api.test/", {})

        assert response.data == {"ok": True}
        assert len(attempts) == 2

    async def test_http_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        async with make_transport(handler, retries=2) as transport:
            with pytest.raises(TransportError):
                await transport.dispatch("GET", "https://api.test/", {})

        assert len(attempts) == 1

    async def test_cookies_are_parsed(self):
        def handler(request):
            return httpx.Response(
                200,
                headers=[
                    ("Set-Cookie", "session=abc; Path=/; HttpOnly; Secure"),
                    ("Set-Cookie", "theme=dark; Max-Age=3600; SameSite=Lax"),
                ],
            )

        async with make_transport(handler) as transport:
            response = await transport.dispatch("GET", "https://api.test/", {})

        assert [(c.name, c.value) for c in response.cookies] == [("session", "abc"), ("theme", "dark")]
        assert response.cookies[0].http_only and response.cookies[0].secure
        assert response.cookies[1].max_age == "3600"
        assert response.cookies[1].same_site == "Lax"


def test_parse_set_cookie_attributes():
    cookie = parse_set_cookie("id=a3fWa; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Domain=example.com; Path=/docs")
    assert cookie.name == "id"
    assert cookie.value == "a3fWa"
    assert cookie.expires == "Wed, 21 Oct 2026 07:28:00 GMT"
    assert cookie.domain == "example.com"
    assert cookie.path == "/docs"
    assert not cookie.http_only
