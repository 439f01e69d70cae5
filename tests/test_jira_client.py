import base64
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

import pytest

from jirasync.core.errors import ApiError, RateLimitedError, ResponseDecodeError, TransportError
from jirasync.core.jira_client import ClientOptions, JiraClient, is_not_found


_LIMITED = {"errorMessages": ["Rate limit exceeded"]}


class _Handler(BaseHTTPRequestHandler):
    # class-level counters so tests can assert waits/calls
    calls = {}
    last_auth = ""
    last_body = None

    protocol_version = "HTTP/1.1"

    def _send(self, status: int, obj=None, headers=None, raw: bytes = b"", ctype="application/json") -> None:
        if obj is not None:
            raw = json.dumps(obj).encode("utf-8")
        self.send_response(status)
        for k, v in (headers or {}).items():
            self.send_header(k, v)
        if raw:
            self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        if raw:
            self.wfile.write(raw)

    def _count(self, path: str) -> int:
        _Handler.calls[path] = _Handler.calls.get(path, 0) + 1
        return _Handler.calls[path]

    def do_GET(self):  # noqa: N802
        path = urlparse(self.path).path
        n = self._count(path)
        _Handler.last_auth = self.headers.get("Authorization", "")

        if path == "/ok":
            self._send(200, {"ok": True})
        elif path == "/limited":
            # first 2 attempts 429, then 200
            if n < 3:
                self._send(429, _LIMITED, {"Retry-After": "2"})
            else:
                self._send(200, {"ok": "finally"})
        elif path == "/limited-forever":
            self._send(429, _LIMITED, {"Retry-After": "1"})
        elif path == "/limited-date":
            self._send(429, _LIMITED, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
        elif path == "/limited-no-header":
            self._send(429, _LIMITED)
        elif path == "/errors":
            self._send(400, {"errorMessages": ["Boom", "Second"], "errors": {"name": "ignored"}})
        elif path == "/field-errors":
            self._send(400, {"errorMessages": [], "errors": {"projectKey": "Project key is invalid"}})
        elif path == "/raw":
            self._send(500, raw=b"upstream exploded\n", ctype="text/plain")
        elif path == "/not-json":
            self._send(200, raw=b"<html>maintenance</html>", ctype="text/html")
        elif path == "/empty":
            self._send(204)
        else:
            self._send(404, {"errorMessages": ["Not found"]})

    def do_POST(self):  # noqa: N802
        path = urlparse(self.path).path
        self._count(path)
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length) if length else b"{}"
        _Handler.last_body = json.loads(body.decode("utf-8"))
        if path == "/echo":
            self._send(201, {**_Handler.last_body, "method": "POST", "query": urlparse(self.path).query})
        else:
            self._send(404, {"errorMessages": ["Not found"]})

    def log_message(self, fmt, *args):  # silence server logs during tests
        return


@pytest.fixture()
def http_server():
    _Handler.calls = {}
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    host, port = server.server_address[:2]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join(timeout=1.0)


@pytest.fixture()
def sleeps():
    return []


def _client(base_url, sleeps, **opts):
    return JiraClient(base_url, "me@example.com", "TOKEN", options=ClientOptions(**opts), sleep=sleeps.append)


def test_get_ok_sends_basic_auth(http_server, sleeps):
    client = _client(http_server, sleeps)
    assert client.get_json("/ok") == {"ok": True}

    scheme, _, encoded = _Handler.last_auth.partition(" ")
    assert scheme == "Basic"
    assert base64.b64decode(encoded).decode("utf-8") == "me@example.com:TOKEN"


def test_post_sends_json_and_params(http_server, sleeps):
    client = _client(http_server, sleeps)
    out = client.post_json("/echo", {"a": 1}, params={"groupname": "devs"})
    assert out["a"] == 1 and out["method"] == "POST"
    assert out["query"] == "groupname=devs"


def test_empty_success_body_is_none(http_server, sleeps):
    assert _client(http_server, sleeps).get_json("/empty") is None


def test_rate_limit_waits_then_succeeds(http_server, sleeps):
    client = _client(http_server, sleeps)
    assert client.get_json("/limited") == {"ok": "finally"}
    assert sleeps == [2, 2]
    assert _Handler.calls["/limited"] == 3


def test_rate_limit_waits_are_bounded(http_server, sleeps):
    client = _client(http_server, sleeps, max_rate_limit_waits=3)
    with pytest.raises(RateLimitedError) as ei:
        client.get_json("/limited-forever")
    err = ei.value
    assert err.status_code == 429
    assert err.attempts == 3
    assert sleeps == [1, 1, 1]
    assert _Handler.calls["/limited-forever"] == 4


def test_rate_limit_with_non_numeric_retry_after_fails_immediately(http_server, sleeps):
    client = _client(http_server, sleeps)
    with pytest.raises(RateLimitedError) as ei:
        client.get_json("/limited-date")
    assert str(ei.value) == "rate limited by Jira API, retry after: Wed, 21 Oct 2015 07:28:00 GMT"
    assert sleeps == []
    assert _Handler.calls["/limited-date"] == 1


def test_rate_limit_without_header_fails_immediately(http_server, sleeps):
    client = _client(http_server, sleeps)
    with pytest.raises(RateLimitedError) as ei:
        client.get_json("/limited-no-header")
    assert ei.value.attempts == 0
    assert isinstance(ei.value, ApiError)
    assert sleeps == []


def test_error_messages_take_precedence(http_server, sleeps):
    with pytest.raises(ApiError) as ei:
        _client(http_server, sleeps).get_json("/errors")
    err = ei.value
    assert err.status_code == 400
    assert err.messages == ["Boom", "Second"]
    assert str(err) == "Jira API error (HTTP 400): Boom"
    assert _Handler.calls["/errors"] == 1


def test_field_errors_used_when_no_messages(http_server, sleeps):
    with pytest.raises(ApiError) as ei:
        _client(http_server, sleeps).get_json("/field-errors")
    assert ei.value.field_errors == {"projectKey": "Project key is invalid"}
    assert str(ei.value) == "Jira API error (HTTP 400): projectKey: Project key is invalid"


def test_raw_body_used_when_not_json(http_server, sleeps):
    with pytest.raises(ApiError) as ei:
        _client(http_server, sleeps).get_json("/raw")
    assert str(ei.value) == "Jira API error (HTTP 500): upstream exploded"
    # 5xx is not retried
    assert _Handler.calls["/raw"] == 1


def test_not_found_predicate(http_server, sleeps):
    with pytest.raises(ApiError) as ei:
        _client(http_server, sleeps).get_json("/nowhere")
    assert is_not_found(ei.value)
    assert not is_not_found(ValueError("404"))


def test_undecodable_success_body(http_server, sleeps):
    with pytest.raises(ResponseDecodeError) as ei:
        _client(http_server, sleeps).get_json("/not-json")
    assert ei.value.status_code == 200
    assert "maintenance" in ei.value.body


def test_transport_error_has_status_zero(sleeps):
    client = _client("http://127.0.0.1:1", sleeps, timeout_sec=2)
    with pytest.raises(TransportError) as ei:
        client.get_json("/ok")
    assert ei.value.status_code == 0
    assert ei.value.method == "GET"


def test_api_error_rejects_success_status():
    with pytest.raises(ValueError):
        ApiError(status_code=200)


def test_base_url_required():
    with pytest.raises(ValueError):
        JiraClient("", "me@example.com", "TOKEN")
