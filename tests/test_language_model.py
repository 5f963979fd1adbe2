from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from panda.assistant_engine.components.llm import (
    HybridLanguageModelClient,
    OllamaClient,
    OpenAIChatClient,
    build_language_model,
)
from panda.assistant_engine.config import EngineConfig
from panda.assistant_engine.interfaces import (
    LanguageModelClient,
    LanguageModelMalformed,
    LanguageModelUnauthenticated,
    LanguageModelUnreachable,
)
from panda.assistant_engine.models import AssistantPersona

PERSONA = AssistantPersona(display_name="Nova")


def _openai(handler, api_key: str = "sk-test") -> OpenAIChatClient:
    config = EngineConfig(openai_api_key=api_key)
    return OpenAIChatClient(config, transport=httpx.MockTransport(handler))


def test_openai_sends_persona_prompt_and_returns_trimmed_content() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Hello there!  "}}]})

    reply = asyncio.run(_openai(handler).complete("hi", PERSONA))
    assert reply == "Hello there!"

    body = json.loads(seen[0].content)
    assert body["model"] == "gpt-3.5-turbo"
    assert body["temperature"] == 0.7
    assert body["messages"][0] == {
        "role": "system",
        "content": "You are Nova, a friendly helpful voice assistant.",
    }
    assert body["messages"][1] == {"role": "user", "content": "hi"}
    assert seen[0].headers["Authorization"] == "Bearer sk-test"


def test_openai_without_key_is_unauthenticated() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(LanguageModelUnauthenticated):
        asyncio.run(_openai(handler, api_key="  ").complete("hi", PERSONA))


@pytest.mark.parametrize(
    ("status", "error"),
    [(401, LanguageModelUnauthenticated), (403, LanguageModelUnauthenticated), (500, LanguageModelUnreachable)],
)
def test_openai_http_errors_are_mapped(status: int, error: type[Exception]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": "nope"})

    with pytest.raises(error):
        asyncio.run(_openai(handler).complete("hi", PERSONA))


def test_openai_transport_error_is_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LanguageModelUnreachable):
        asyncio.run(_openai(handler).complete("hi", PERSONA))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]}),
    ],
)
def test_openai_malformed_responses(response: httpx.Response) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(LanguageModelMalformed):
        asyncio.run(_openai(handler).complete("hi", PERSONA))


def test_ollama_generate_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"response": "Local answer"})

    config = EngineConfig(ollama_base_url="http://ollama.test/", ollama_model="tiny", llm_temperature=0.2)
    client = OllamaClient(config, transport=httpx.MockTransport(handler))
    assert asyncio.run(client.complete("hi", PERSONA)) == "Local answer"

    assert str(seen[0].url) == "http://ollama.test/api/generate"
    body = json.loads(seen[0].content)
    assert body["model"] == "tiny"
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.2}
    assert body["system"].startswith("You are Nova")


class StaticClient(LanguageModelClient):
    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls = 0

    async def complete(self, prompt: str, persona: AssistantPersona) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply or ""


def test_hybrid_prefers_primary() -> None:
    primary = StaticClient(reply="primary")
    fallback = StaticClient(reply="fallback")
    client = HybridLanguageModelClient(primary, fallback)
    assert asyncio.run(client.complete("hi", PERSONA)) == "primary"
    assert fallback.calls == 0


def test_hybrid_uses_fallback_on_failure() -> None:
    client = HybridLanguageModelClient(
        StaticClient(error=LanguageModelUnreachable("down")),
        StaticClient(reply="fallback"),
    )
    assert asyncio.run(client.complete("hi", PERSONA)) == "fallback"


def test_hybrid_without_fallback_reraises() -> None:
    client = HybridLanguageModelClient(StaticClient(error=LanguageModelMalformed("empty")))
    with pytest.raises(LanguageModelMalformed):
        asyncio.run(client.complete("hi", PERSONA))


def test_build_language_model_by_backend() -> None:
    assert isinstance(build_language_model(EngineConfig()), OpenAIChatClient)
    assert isinstance(build_language_model(EngineConfig(llm_backend="ollama")), OllamaClient)
    assert isinstance(build_language_model(EngineConfig(llm_backend="hybrid")), HybridLanguageModelClient)
