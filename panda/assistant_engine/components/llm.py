from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from panda.assistant_engine.config import EngineConfig
from panda.assistant_engine.interfaces import (
    LanguageModelClient,
    LanguageModelError,
    LanguageModelMalformed,
    LanguageModelUnauthenticated,
    LanguageModelUnreachable,
)
from panda.assistant_engine.models import AssistantPersona

LOGGER = logging.getLogger(__name__)


def system_prompt(persona: AssistantPersona) -> str:
    return f"You are {persona.display_name}, a friendly helpful voice assistant."


async def _post_json(
    url: str,
    payload: dict[str, Any],
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code in (401, 403):
            raise LanguageModelUnauthenticated(
                f"language model rejected credentials ({exc.response.status_code})"
            ) from exc
        raise LanguageModelUnreachable(
            f"language model returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise LanguageModelUnreachable(f"language model unreachable: {exc}") from exc

    try:
        return response.json()
    except ValueError as exc:
        raise LanguageModelMalformed("language model returned invalid JSON") from exc


class OpenAIChatClient(LanguageModelClient):
    def __init__(
        self,
        config: EngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def complete(self, prompt: str, persona: AssistantPersona) -> str:
        if not self._config.openai_api_key.strip():
            raise LanguageModelUnauthenticated("openai api key is empty")

        payload = {
            "model": self._config.openai_model,
            "messages": [
                {"role": "system", "content": system_prompt(persona)},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._config.llm_temperature,
        }
        headers = {"Authorization": f"Bearer {self._config.openai_api_key}"}

        started = time.perf_counter()
        data = await _post_json(
            self._config.openai_base_url,
            payload,
            timeout=self._config.llm_timeout_sec,
            headers=headers,
            transport=self._transport,
        )
        text = _extract_chat_text(data)
        LOGGER.debug("openai completion in %d ms", int((time.perf_counter() - started) * 1000))
        if not text:
            raise LanguageModelMalformed("openai response carried no message content")
        return text


def _extract_chat_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        if isinstance(first, dict):
            message = first.get("message", {})
            if isinstance(message, dict):
                content = message.get("content", "")
                if isinstance(content, str):
                    return content.strip()
    return ""


class OllamaClient(LanguageModelClient):
    def __init__(
        self,
        config: EngineConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def complete(self, prompt: str, persona: AssistantPersona) -> str:
        payload = {
            "model": self._config.ollama_model,
            "prompt": prompt,
            "system": system_prompt(persona),
            "stream": False,
            "options": {"temperature": self._config.llm_temperature},
        }
        data = await _post_json(
            f"{self._config.ollama_base_url.rstrip('/')}/api/generate",
            payload,
            timeout=self._config.llm_timeout_sec,
            transport=self._transport,
        )
        text = str(data.get("response", "")).strip() if isinstance(data, dict) else ""
        if not text:
            raise LanguageModelMalformed("ollama response carried no text")
        return text


class HybridLanguageModelClient(LanguageModelClient):
    """Asks ``primary`` first and ``fallback`` only when the primary fails."""

    def __init__(
        self,
        primary: LanguageModelClient,
        fallback: LanguageModelClient | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback

    async def complete(self, prompt: str, persona: AssistantPersona) -> str:
        try:
            return await self._primary.complete(prompt, persona)
        except LanguageModelError as exc:
            if self._fallback is None:
                raise
            LOGGER.warning("primary language model failed, trying fallback: %s", exc)
        return await self._fallback.complete(prompt, persona)


def build_language_model(config: EngineConfig) -> LanguageModelClient:
    if config.llm_backend == "ollama":
        return OllamaClient(config)
    if config.llm_backend == "hybrid":
        return HybridLanguageModelClient(primary=OllamaClient(config), fallback=OpenAIChatClient(config))
    return OpenAIChatClient(config)
