import json

import httpx
import pytest

from assist_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from assist_core.domain.models import ChatMessage, ChatRequest
from assist_core.providers import create_provider
from assist_core.providers.openai_compat import OpenAICompatClient
from assist_core.providers.registry import GLM_CONFIG, KIMI_CONFIG, OLLAMA_CONFIG


class SettingsStub:
    http_timeout = 1.0
    default_provider = "ollama"
    ollama_base_url = "http://localhost:11434/v1/"
    kimi_api_key = "k"
    kimi_base_url = "https://api.moonshot.cn/v1"
    glm_api_key = None
    glm_base_url = "https://open.bigmodel.cn/api/paas/v4"


def _req(model="assistant-chat"):
    return ChatRequest(provider="ollama", model=model, messages=[ChatMessage(role="user", content="hi")])


def _fake_client(captured, status_code=200, lines=(), body=""):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = body

        def read(self):
            return body.encode("utf-8")

        def iter_lines(self):
            return iter(lines)

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

    class Client:
        def __init__(self, *a, **kw):
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, method, url, json=None, headers=None):
            captured["method"] = method
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return Resp()

    return Client


def test_create_provider_default(monkeypatch):
    monkeypatch.setattr("assist_core.providers.settings", SettingsStub())
    provider = create_provider()
    assert isinstance(provider, OpenAICompatClient)
    assert provider.name == "ollama"


def test_create_provider_explicit(monkeypatch):
    monkeypatch.setattr("assist_core.providers.settings", SettingsStub())
    assert create_provider("KIMI").name == "kimi"
    assert create_provider("glm").name == "glm"


def test_create_provider_unknown(monkeypatch):
    monkeypatch.setattr("assist_core.providers.settings", SettingsStub())
    with pytest.raises(ValidationError) as exc_info:
        create_provider("gpt-x")
    assert exc_info.value.code == "UNKNOWN_PROVIDER"


def test_stream_parses_sse_lines(monkeypatch):
    captured = {}
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"role": "assistant"}}]}),
        "data: " + json.dumps({"choices": [{"delta": {"content": "你"}}]}),
        "",
        ": keep-alive",
        "data: " + json.dumps({"choices": [{"delta": {"content": "好"}}]}),
        "data: [DONE]",
    ]
    monkeypatch.setattr("httpx.Client", _fake_client(captured, lines=lines))

    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    assert list(client.chat_stream(_req())) == ["你", "好"]

    assert captured["method"] == "POST"
    assert captured["url"] == "http://localhost:11434/v1/chat/completions"
    assert captured["payload"]["stream"] is True
    assert captured["payload"]["model"] == "qwen2.5:7b"
    assert captured["payload"]["messages"] == [{"role": "user", "content": "hi"}]
    assert "Authorization" not in captured["headers"]


def test_stream_sends_bearer_token(monkeypatch):
    captured = {}
    monkeypatch.setattr("httpx.Client", _fake_client(captured, lines=["data: [DONE]"]))
    client = OpenAICompatClient(SettingsStub(), KIMI_CONFIG)
    assert list(client.chat_stream(_req())) == []
    assert captured["headers"]["Authorization"] == "Bearer k"
    assert captured["payload"]["model"] == "kimi-k2-turbo-preview"


def test_request_is_lazy(monkeypatch):
    captured = {}
    monkeypatch.setattr("httpx.Client", _fake_client(captured, lines=[]))
    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    it = client.chat_stream(_req())
    assert "url" not in captured
    list(it)
    assert "url" in captured


def test_missing_api_key_fails_eagerly():
    client = OpenAICompatClient(SettingsStub(), GLM_CONFIG)
    with pytest.raises(ValidationError) as exc_info:
        client.chat_stream(_req())
    assert exc_info.value.code == "MISSING_API_KEY"


def test_unknown_model():
    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    with pytest.raises(ValidationError) as exc_info:
        client.chat_stream(_req(model="ide-chat"))
    assert exc_info.value.code == "UNKNOWN_MODEL"


def test_rate_limit(monkeypatch):
    monkeypatch.setattr("httpx.Client", _fake_client({}, status_code=429))
    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    with pytest.raises(RateLimitError):
        list(client.chat_stream(_req()))


def test_api_error_carries_status(monkeypatch):
    monkeypatch.setattr("httpx.Client", _fake_client({}, status_code=500, body="boom"))
    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    with pytest.raises(ApiError) as exc_info:
        list(client.chat_stream(_req()))
    assert exc_info.value.http_status == 500
    assert exc_info.value.message == "boom"


def test_network_error(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, *a, **kw):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    client = OpenAICompatClient(SettingsStub(), OLLAMA_CONFIG)
    with pytest.raises(NetworkError):
        list(client.chat_stream(_req()))


def test_parse_stream_line_ignores_garbage():
    parse = OpenAICompatClient._parse_stream_line
    assert parse("data: {not json") == ""
    assert parse("data: " + json.dumps({"choices": []})) == ""
    assert parse(json.dumps({"choices": [{"delta": {"content": "x"}}]})) == "x"
