from __future__ import annotations

import http.client
import io
import json
import urllib.error
import urllib.request
from typing import Any

import pytest

from conftest import completion_body, names_payload
from robin.models.llm_client import LLMConfigurationError, LLMRequest, LLMTransportError
from robin.models.openrouter import DEFAULT_BASE_URL, OpenRouterClient
from robin.tasks.business_names import SCHEMA, BusinessNamesResponse


class _FakeResponse:
    def __init__(self, body: str, status: int = 200) -> None:
        self._body = body.encode("utf-8")
        self.status = status

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        return None


def _request() -> LLMRequest[BusinessNamesResponse]:
    return LLMRequest(
        prompt="Suggest names",
        response_model=BusinessNamesResponse,
        schema=SCHEMA,
        system_prompt="You name businesses.",
        correction_prompt="Fix it.",
    )


def test_http_transport_posts_chat_completion(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_urlopen(request: urllib.request.Request, timeout: float) -> _FakeResponse:
        captured["request"] = request
        captured["timeout"] = timeout
        return _FakeResponse(completion_body(json.dumps(names_payload())))

    monkeypatch.delenv("ROBIN_TIMEOUT", raising=False)
    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    client = OpenRouterClient(api_key="secret", model="anthropic/claude-sonnet-4-5", timeout=12)

    result = client.invoke(_request())

    request = captured["request"]
    assert len(result.names) == 5
    assert request.full_url == DEFAULT_BASE_URL
    assert request.get_method() == "POST"
    assert request.get_header("Authorization") == "Bearer secret"
    assert request.get_header("Content-type") == "application/json"
    assert request.get_header("Http-referer") == "https://robin.app"
    assert request.get_header("X-title") == "Robin Business Builder"
    assert captured["timeout"] == 12
    body = json.loads(request.data.decode("utf-8"))
    assert body["model"] == "anthropic/claude-sonnet-4-5"
    assert body["messages"][0] == {"role": "system", "content": "You name businesses."}


def test_http_error_maps_to_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []

    def fake_urlopen(request: urllib.request.Request, timeout: float) -> _FakeResponse:
        calls.append(1)
        raise urllib.error.HTTPError(
            request.full_url, 401, "Unauthorized", hdrs=None, fp=io.BytesIO(b'{"error":"invalid key"}')
        )

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    client = OpenRouterClient(api_key="bad")

    with pytest.raises(LLMTransportError) as excinfo:
        client.invoke(_request())

    assert str(excinfo.value) == 'OpenRouter API error (401): {"error":"invalid key"}'
    assert len(calls) == 1


def test_network_failure_maps_to_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(request: urllib.request.Request, timeout: float) -> _FakeResponse:
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    client = OpenRouterClient(api_key="key")

    with pytest.raises(LLMTransportError, match="OpenRouter API error: connection refused"):
        client.invoke(_request())


class _TruncatedResponse(_FakeResponse):
    def read(self) -> bytes:
        raise http.client.IncompleteRead(b"partial", 100)


def _raise_bad_status_line(request: urllib.request.Request, timeout: float) -> _FakeResponse:
    raise http.client.BadStatusLine("garbage")


@pytest.mark.parametrize(
    "failure",
    [
        lambda request, timeout: _TruncatedResponse(""),
        _raise_bad_status_line,
    ],
    ids=["incomplete-read", "bad-status-line"],
)
def test_protocol_failure_maps_to_transport_error(monkeypatch: pytest.MonkeyPatch, failure) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", failure)
    client = OpenRouterClient(api_key="key")

    with pytest.raises(LLMTransportError, match="OpenRouter API error: connection failed"):
        client.invoke(_request())


def test_unexpected_transport_exception_is_wrapped() -> None:
    def transport(payload: dict[str, Any]) -> str:
        raise RuntimeError("socket closed")

    client = OpenRouterClient(api_key="key", transport=transport)

    with pytest.raises(LLMTransportError, match="OpenRouter API error: socket closed"):
        client.invoke(_request())


def test_non_success_status_maps_to_transport_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        urllib.request,
        "urlopen",
        lambda request, timeout: _FakeResponse("rate limited", status=429),
    )
    client = OpenRouterClient(api_key="key")

    with pytest.raises(LLMTransportError, match=r"OpenRouter API error \(429\): rate limited"):
        client.invoke(_request())


def test_timeout_override_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[float] = []

    def fake_urlopen(request: urllib.request.Request, timeout: float) -> _FakeResponse:
        seen.append(timeout)
        return _FakeResponse(completion_body(json.dumps(names_payload())))

    monkeypatch.setenv("ROBIN_TIMEOUT", "5")
    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

    OpenRouterClient(api_key="key", timeout=60).invoke(_request())

    assert seen == [5.0]


def test_missing_api_key_fails_before_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    calls: list[dict] = []
    client = OpenRouterClient(transport=lambda payload: calls.append(payload) or "")

    with pytest.raises(LLMConfigurationError, match="OpenRouter API key is required"):
        client.invoke(_request())
    with pytest.raises(LLMConfigurationError):
        client.complete([{"role": "user", "content": "hi"}])
    assert calls == []


def test_api_key_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENROUTER_API_KEY", "from-env")
    client = OpenRouterClient(transport=lambda payload: completion_body("{}"))

    assert client.build_headers()["Authorization"] == "Bearer from-env"


def test_custom_attribution_headers() -> None:
    client = OpenRouterClient(api_key="k", referer="https://example.test", title="Example")
    headers = client.build_headers()

    assert headers["HTTP-Referer"] == "https://example.test"
    assert headers["X-Title"] == "Example"


def test_complete_returns_raw_text(make_client) -> None:
    client, transport = make_client("Plain reply, no JSON.")

    reply = client.complete([{"role": "user", "content": "hi"}], model="m", temperature=0.0, max_tokens=64)

    assert reply == "Plain reply, no JSON."
    assert transport.payloads[0] == {
        "model": "m",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.0,
        "max_tokens": 64,
    }


@pytest.mark.parametrize(
    "body",
    [
        "",
        "not json",
        "[]",
        json.dumps({"choices": [{"message": {"content": ""}}]}),
        json.dumps({"choices": [{"message": {"content": None}}]}),
        json.dumps({"choices": ["oops"]}),
    ],
)
def test_extract_content_rejects_unusable_bodies(body: str) -> None:
    assert OpenRouterClient._extract_content(body) is None
