from panda.assistant_engine.config import EngineConfig
from panda.assistant_engine.runtime import AssistantOrchestrator, build_default_orchestrator

__all__ = [
    "AssistantOrchestrator",
    "EngineConfig",
    "build_default_orchestrator",
]
