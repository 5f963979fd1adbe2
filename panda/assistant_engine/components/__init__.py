from panda.assistant_engine.components.classifier import (
    COMMAND_RULES,
    CommandRule,
    RuleBasedCommandClassifier,
    classify,
)
from panda.assistant_engine.components.conversation import (
    InMemoryConversationSink,
    SqliteConversationSink,
)
from panda.assistant_engine.components.executor import (
    DesktopActions,
    InProcessDeviceActionExecutor,
    build_desktop_executor,
)
from panda.assistant_engine.components.llm import (
    HybridLanguageModelClient,
    OllamaClient,
    OpenAIChatClient,
    build_language_model,
)
from panda.assistant_engine.components.permissions import (
    GateDecision,
    PermissionGate,
    StaticCapabilityGate,
)
from panda.assistant_engine.components.tts import FileSpeechOutput

__all__ = [
    "COMMAND_RULES",
    "CommandRule",
    "DesktopActions",
    "FileSpeechOutput",
    "GateDecision",
    "HybridLanguageModelClient",
    "InMemoryConversationSink",
    "InProcessDeviceActionExecutor",
    "OllamaClient",
    "OpenAIChatClient",
    "PermissionGate",
    "RuleBasedCommandClassifier",
    "SqliteConversationSink",
    "StaticCapabilityGate",
    "build_desktop_executor",
    "build_language_model",
    "classify",
]
