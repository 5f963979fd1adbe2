from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os

from panda.assistant_engine.models import PHONE_CALL, SEND_SMS


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _default_rationales() -> dict[str, str]:
    return {
        PHONE_CALL: (
            "I need permission to make phone calls. "
            "Please allow it and I'll place the call right away."
        ),
        SEND_SMS: (
            "I need permission to send text messages. "
            "Please allow it and I'll send your message."
        ),
    }


LLM_BACKENDS = ("openai", "ollama", "hybrid")


@dataclass(frozen=True)
class EngineConfig:
    log_level: str = "INFO"
    event_queue_size: int = 256
    defer_on_missing_capability: bool = True

    greeting_template: str = "Hi! I'm {name}, your voice assistant. How can I help you today?"
    llm_failure_message: str = (
        "I'm having trouble reaching the AI service right now. Let's try again soon."
    )
    capability_rationales: dict[str, str] = field(default_factory=_default_rationales)

    llm_backend: str = "openai"
    openai_base_url: str = "https://api.openai.com/v1/chat/completions"
    openai_model: str = "gpt-3.5-turbo"
    openai_api_key: str = ""
    ollama_base_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "qwen2.5:7b-instruct"
    llm_temperature: float = 0.7
    llm_timeout_sec: int = 30

    speech_output_dir: Path = Path("data/speech/out")

    def rationale_for(self, capability: str) -> str:
        return self.capability_rationales.get(
            capability,
            f"I need the '{capability}' permission to do that.",
        )

    @classmethod
    def from_env(cls) -> "EngineConfig":
        base = cls()
        backend = os.getenv("PANDA_ENGINE_LLM_BACKEND", base.llm_backend).strip().lower()
        if backend not in LLM_BACKENDS:
            backend = base.llm_backend

        return cls(
            log_level=os.getenv("PANDA_ENGINE_LOG_LEVEL", base.log_level),
            event_queue_size=max(
                8,
                _int_env("PANDA_ENGINE_EVENT_QUEUE_SIZE", base.event_queue_size),
            ),
            defer_on_missing_capability=_bool_env(
                "PANDA_ENGINE_DEFER_ON_MISSING_CAPABILITY",
                base.defer_on_missing_capability,
            ),
            greeting_template=os.getenv("PANDA_ENGINE_GREETING", base.greeting_template),
            llm_failure_message=os.getenv(
                "PANDA_ENGINE_LLM_FAILURE_MESSAGE",
                base.llm_failure_message,
            ),
            llm_backend=backend,
            openai_base_url=os.getenv("PANDA_ENGINE_OPENAI_BASE_URL", base.openai_base_url),
            openai_model=os.getenv("PANDA_ENGINE_OPENAI_MODEL", base.openai_model),
            openai_api_key=os.getenv(
                "PANDA_ENGINE_OPENAI_API_KEY",
                os.getenv("OPENAI_API_KEY", base.openai_api_key),
            ),
            llm_temperature=_float_env(
                "PANDA_ENGINE_LLM_TEMPERATURE",
                base.llm_temperature,
            ),
            ollama_base_url=os.getenv("PANDA_ENGINE_OLLAMA_BASE_URL", base.ollama_base_url),
            ollama_model=os.getenv("PANDA_ENGINE_OLLAMA_MODEL", base.ollama_model),
            llm_timeout_sec=max(5, _int_env("PANDA_ENGINE_LLM_TIMEOUT_SEC", base.llm_timeout_sec)),
            speech_output_dir=Path(
                os.getenv("PANDA_ENGINE_SPEECH_OUTPUT_DIR", str(base.speech_output_dir))
            ),
        )
