from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from panda.assistant_engine.components import StaticCapabilityGate
from panda.assistant_engine.config import EngineConfig
from panda.assistant_engine.models import RunResult, command_payload
from panda.assistant_engine.runtime import AssistantOrchestrator, build_default_orchestrator
from panda.config import Settings
from panda.schemas import (
    AssistantStateResponse,
    CapabilityGrantRequest,
    ClassifyRequest,
    CommandModel,
    ConversationTurnModel,
    GrantResponse,
    PendingCommandModel,
    RunResponse,
    SubmitRequest,
)


def _command_model(payload: dict[str, object]) -> CommandModel:
    fields = {key: value for key, value in payload.items() if key != "kind"}
    return CommandModel(kind=str(payload["kind"]), fields=fields)


def _run_response(result: RunResult) -> RunResponse:
    return RunResponse(
        sequence=result.raw_input.sequence,
        command=_command_model(command_payload(result.command)),
        state=result.state.value,
        handled_locally=result.outcome.handled_locally if result.outcome else None,
        turns=[
            ConversationTurnModel(content=turn.content, from_user=turn.from_user, timestamp=turn.timestamp)
            for turn in result.turns
        ],
    )


async def _wait_for_run(orchestrator: AssistantOrchestrator, task: asyncio.Task[RunResult]) -> RunResponse:
    await asyncio.wait({task})
    if task.cancelled():
        return RunResponse(sequence=None, state="cancelled", cancelled=True)
    response = _run_response(task.result())
    await orchestrator.wait_idle()
    return response


def create_app(
    settings: Settings | None = None,
    config: EngineConfig | None = None,
    orchestrator: AssistantOrchestrator | None = None,
    capabilities: StaticCapabilityGate | None = None,
) -> FastAPI:
    app_settings = settings or Settings.from_env()
    gate = capabilities or StaticCapabilityGate(app_settings.granted_capabilities)
    assistant = orchestrator or build_default_orchestrator(
        settings=app_settings,
        config=config,
        capabilities=gate,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        assistant.greet()
        try:
            yield
        finally:
            await assistant.shutdown()

    app = FastAPI(title=app_settings.app_name, version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.orchestrator = assistant
    app.state.capabilities = gate

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/assistant/submit", response_model=RunResponse)
    async def submit(payload: SubmitRequest) -> RunResponse:
        task = assistant.submit(payload.text, add_user_message=payload.add_user_message)
        return await _wait_for_run(assistant, task)

    @app.post("/v1/assistant/capabilities/grant", response_model=GrantResponse)
    async def grant_capability(payload: CapabilityGrantRequest) -> GrantResponse:
        token = payload.capability.strip().lower()
        gate.grant(token)
        task = assistant.notify_capability_granted(token)
        if task is None:
            return GrantResponse(capability=token, resumed=False)
        return GrantResponse(capability=token, resumed=True, run=await _wait_for_run(assistant, task))

    @app.post("/v1/assistant/capabilities/revoke")
    async def revoke_capability(payload: CapabilityGrantRequest) -> dict[str, object]:
        gate.revoke(payload.capability)
        return {"granted": list(gate.granted())}

    @app.post("/v1/assistant/conversation/clear")
    async def clear_conversation() -> dict[str, str]:
        assistant.clear_conversation()
        return {"status": "cleared"}

    @app.get("/v1/assistant/conversation", response_model=list[ConversationTurnModel])
    async def conversation() -> list[ConversationTurnModel]:
        return [
            ConversationTurnModel(content=turn.content, from_user=turn.from_user, timestamp=turn.timestamp)
            for turn in assistant.conversation.turns()
        ]

    @app.get("/v1/assistant/state", response_model=AssistantStateResponse)
    async def state() -> AssistantStateResponse:
        pending = assistant.pending_command
        return AssistantStateResponse(
            state=assistant.state.value,
            processing=assistant.processing,
            pending=(
                PendingCommandModel(
                    text=pending.raw_input.text,
                    sequence=pending.raw_input.sequence,
                    capability=pending.capability,
                )
                if pending is not None
                else None
            ),
            granted_capabilities=list(gate.granted()),
            assistant_name=assistant.persona.display_name,
        )

    @app.post("/v1/assistant/classify", response_model=CommandModel)
    async def classify_text(payload: ClassifyRequest) -> CommandModel:
        return _command_model(command_payload(assistant.classifier.classify(payload.text)))

    return app
