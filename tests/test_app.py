import asyncio
import json

import pytest
from starlette.testclient import TestClient

from nginx_echo.app import create_app
from nginx_echo.config import EchoConfig
from nginx_echo.middleware import BODY_TOO_LARGE

PROXY_HEADERS = {
    "X-Nginx-Echo-Host": "example.com",
    "X-Nginx-Echo-Ip": "203.0.113.7",
    "X-Nginx-Echo-Scheme": "https",
}


@pytest.mark.parametrize("method", ["GET", "OPTIONS", "TRACE"])
def test_read_only_methods_have_no_body_fields(proxied, method):
    r = proxied.request(method, "/", content=b'{"ignored": true}', headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    body = r.json()
    assert body["method"] == method
    assert "data" not in body and "json" not in body
    assert "params" not in body


def test_params_present_with_query(proxied):
    body = proxied.get("/items?id=1&tag=a&tag=b").json()
    assert body["params"] == {"id": "1", "tag": ["a", "b"]}
    assert body["url"] == "https://example.com/items?id=1&tag=a&tag=b"


def test_origin_and_host_come_from_proxy_headers(proxied):
    body = proxied.get("/").json()
    assert body["origin"] == "203.0.113.7"
    assert body["headers"]["Host"] == "example.com"
    for name in ("X-Nginx-Echo-Host", "X-Nginx-Echo-Ip", "X-Nginx-Echo-Scheme"):
        assert name not in body["headers"]


def test_host_is_empty_without_proxy_headers(client):
    body = client.get("/some/path").json()
    assert body["headers"]["Host"] == ""
    assert body["origin"] == ""
    assert body["url"] == "/some/path"


def test_root_url_has_no_trailing_slash(proxied):
    assert proxied.get("/").json()["url"] == "https://example.com"


def test_repeated_headers_are_lists(proxied):
    r = proxied.get("/", headers=[("X-Multi", "a"), ("X-Multi", "b")])
    assert r.json()["headers"]["X-Multi"] == ["a", "b"]


def test_json_round_trip(proxied):
    r = proxied.post("/", content=b'{"a":1,"b":[2,3]}', headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    body = r.json()
    assert body["json"] == {"a": 1, "b": [2, 3]}
    assert "data" not in body


def test_binary_body(proxied):
    r = proxied.post(
        "/upload",
        content=bytes.fromhex("deadbeef"),
        headers={"Content-Type": "application/octet-stream"},
    )
    body = r.json()
    assert body["data"] == "data:application/octet-stream;base64,3q2+7w=="
    assert "json" not in body


def test_form_body_on_delete_keeps_method(proxied):
    r = proxied.request(
        "DELETE",
        "/",
        content=b"x=1&y=2",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["data"] == "x=1&y=2"
    assert body["method"] == "DELETE"


def test_text_body_is_not_echoed(proxied):
    body = proxied.put("/", content=b"hello", headers={"Content-Type": "text/plain"}).json()
    assert "data" not in body and "json" not in body


def test_oversized_body_is_rejected(proxied):
    r = proxied.post(
        "/",
        content=b"x" * (1048576 + 1),
        headers={"Content-Type": "application/octet-stream"},
    )
    assert r.status_code == 400
    assert r.json() == {"code": 400, "error": "Bad Request", "detail": BODY_TOO_LARGE}


def test_body_limit_applies_to_streamed_bodies():
    app = create_app(EchoConfig(max_body_bytes=8))
    with TestClient(app) as c:
        r = c.post("/", content=iter([b"12345", b"67890"]), headers={"Content-Type": "text/plain"})
    assert r.status_code == 400
    assert r.json()["detail"] == BODY_TOO_LARGE


def test_body_at_limit_is_accepted():
    app = create_app(EchoConfig(max_body_bytes=4))
    with TestClient(app) as c:
        r = c.post("/", content=b"abcd", headers={"Content-Type": "application/octet-stream"})
    assert r.status_code == 200
    assert r.json()["data"] == "data:application/octet-stream;base64,YWJjZA=="


def test_malformed_json_gives_error_response(proxied):
    r = proxied.post("/", content=b"{nope", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == 400
    assert body["error"] == "Bad Request"
    assert body["detail"]
    assert "origin" not in body


def test_malformed_form_gives_error_response(proxied):
    r = proxied.patch(
        "/",
        content=b"a=%zz",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == 'invalid URL escape "%zz"'


def test_head_has_headers_but_no_body(proxied):
    get = proxied.get("/")
    head = proxied.head("/")
    assert head.status_code == 200
    assert head.content == b""
    assert head.headers["content-type"] == get.headers["content-type"]
    # "HEAD" is one character longer than "GET" in the echoed method
    assert int(head.headers["content-length"]) == len(get.content) + 1


def test_response_format(proxied):
    r = proxied.get("/", headers={"X-Markup": "<b>&amp;</b>"})
    assert r.headers["content-type"] == "application/json; charset=utf-8"
    text = r.text
    assert text.startswith('{\n  "origin": "203.0.113.7",\n  "method": "GET",')
    assert text.endswith("}\n")
    assert "<b>&amp;</b>" in text
    assert json.loads(text)["headers"]["X-Markup"] == "<b>&amp;</b>"


def test_transfer_encoding_is_echoed(proxied):
    r = proxied.post("/", content=iter([b"abc"]), headers={"Content-Type": "text/plain"})
    assert r.json()["headers"]["Transfer-Encoding"] == "chunked"


def test_custom_proxy_header_names():
    config = EchoConfig(host_header="X-Real-Host", ip_header="X-Real-Ip", scheme_header="X-Real-Proto")
    with TestClient(create_app(config)) as c:
        body = c.get(
            "/a",
            headers={"X-Real-Host": "example.org", "X-Real-Ip": "198.51.100.1", "X-Real-Proto": "http"},
        ).json()
    assert body["url"] == "http://example.org/a"
    assert body["origin"] == "198.51.100.1"
    assert "X-Real-Ip" not in body["headers"]


def test_requests_do_not_affect_each_other(proxied):
    proxied.post("/", content=b'{"a": 1}', headers={"Content-Type": "application/json"})
    body = proxied.get("/").json()
    assert "json" not in body
    assert "Content-Type" not in body["headers"]


def test_utf8_header_values(proxied):
    r = proxied.get("/", headers=[(b"X-Name", "café".encode("utf-8"))])
    headers = r.json()["headers"]
    assert headers["X-Name"] == "café"
    assert "café" in r.text


def test_query_is_not_validated_with_form_body(proxied):
    r = proxied.post(
        "/?a=%zz&b=1",
        content=b"x=1",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["data"] == "x=1"
    assert body["params"] == {"b": "1"}


def _call(app, method, path, query=b"", headers=PROXY_HEADERS):
    """Send one request straight to the ASGI app, bypassing client-side URL handling."""
    sent = []

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message):
        sent.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "root_path": "",
        "query_string": query,
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()],
        "client": ("127.0.0.1", 50000),
        "server": ("127.0.0.1", 7777),
    }
    asyncio.run(app(scope, receive, send))

    status = sent[0]["status"]
    body = b"".join(m.get("body", b"") for m in sent[1:])
    return status, json.loads(body)


def test_asterisk_target_is_echoed():
    status, body = _call(create_app(), "OPTIONS", "*")
    assert status == 200
    assert body["method"] == "OPTIONS"
    assert body["url"] == "https://example.com/*"

    status, body = _call(create_app(), "OPTIONS", "*", headers={})
    assert status == 200
    assert body["url"] == "*"


def test_connect_target_is_echoed():
    status, body = _call(create_app(), "CONNECT", "internal:443")
    assert status == 200
    assert body["method"] == "CONNECT"
    assert body["url"] == "https://example.com"
    assert "data" not in body and "json" not in body


def test_absolute_form_target_is_echoed():
    status, body = _call(create_app(), "GET", "http://user@internal/p", query=b"q=1")
    assert status == 200
    assert body["url"] == "https://user@example.com/p?q=1"
    assert body["params"] == {"q": "1"}


def test_undecodable_header_bytes_are_replaced():
    # latin-1 round-trips the raw byte 0xff into the scope
    status, body = _call(create_app(), "GET", "/", headers={"X-Raw": "a\xffb"})
    assert status == 200
    assert body["headers"]["X-Raw"] == "a�b"
