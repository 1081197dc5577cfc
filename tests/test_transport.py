import threading

import pytest
import requests

from agribot.config import Settings
from agribot.errors import ProtocolError, TransportError
from agribot.transport import HttpTransport, LocalTransport, build_transport


class FakeResponse:
    def __init__(self, status_code=200, body=None, text_body=False):
        self.status_code = status_code
        self._body = body
        self._text_body = text_body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._text_body:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response

    def close(self):
        pass


def test_http_transport_posts_json_with_key_and_timeout():
    session = FakeSession(FakeResponse(body={"response": "ok"}))
    transport = HttpTransport("https://example.test/functions/v1/", api_key="anon", session=session)
    assert transport.send("ai-chat", {"message": "hi"}, timeout=7) == {"response": "ok"}
    post = session.posts[0]
    assert post["url"] == "https://example.test/functions/v1/ai-chat"
    assert post["json"] == {"message": "hi"}
    assert post["timeout"] == 7
    assert post["headers"]["Authorization"] == "Bearer anon"


@pytest.mark.parametrize("error", [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("refused")])
def test_http_network_failures_are_transport_errors(error):
    transport = HttpTransport("https://example.test", session=FakeSession(error=error))
    with pytest.raises(TransportError):
        transport.send("crop-prediction", {}, timeout=1)


@pytest.mark.parametrize("response", [FakeResponse(text_body=True), FakeResponse(body=["not", "an", "object"])])
def test_http_malformed_bodies_are_protocol_errors(response):
    transport = HttpTransport("https://example.test", session=FakeSession(response))
    with pytest.raises(ProtocolError):
        transport.send("crop-prediction", {}, timeout=1)


def test_http_error_status_keeps_error_envelope():
    transport = HttpTransport("https://example.test", session=FakeSession(FakeResponse(500, {"error": "GEMINI_API_KEY is not configured"})))
    assert transport.send("ai-chat", {}, timeout=1) == {"error": "GEMINI_API_KEY is not configured"}


def test_http_error_status_without_envelope():
    transport = HttpTransport("https://example.test", session=FakeSession(FakeResponse(502, {})))
    assert transport.send("ai-chat", {}, timeout=1) == {"error": "HTTP 502"}


class SlowBackend:
    def __init__(self):
        self.release = threading.Event()

    def handler(self, name):
        if name != "ai-chat":
            raise KeyError(name)
        return self.chat

    def chat(self, request):
        self.release.wait(5)
        return {"response": "late"}


def test_local_transport_times_out_as_transport_error():
    backend = SlowBackend()
    transport = LocalTransport(backend)
    try:
        with pytest.raises(TransportError):
            transport.send("ai-chat", {"message": "hi"}, timeout=0.05)
    finally:
        backend.release.set()
        transport.close()


def test_local_transport_unknown_function():
    transport = LocalTransport(SlowBackend())
    with pytest.raises(TransportError):
        transport.send("yield-prediction", {}, timeout=1)
    transport.close()


def test_local_transport_returns_backend_reply():
    backend = SlowBackend()
    backend.release.set()
    transport = LocalTransport(backend)
    assert transport.send("ai-chat", {"message": "hi"}, timeout=2) == {"response": "late"}
    transport.close()


def test_build_transport_picks_http_when_url_configured():
    transport = build_transport(Settings(functions_url="https://example.test"))
    assert isinstance(transport, HttpTransport)


def test_build_transport_defaults_to_local_backend():
    transport = build_transport(Settings(), backend_factory=lambda settings: SlowBackend())
    assert isinstance(transport, LocalTransport)
    transport.close()
