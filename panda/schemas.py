from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SubmitRequest(BaseModel):
    text: str = Field(min_length=1)
    add_user_message: bool = True


class ClassifyRequest(BaseModel):
    text: str


class CapabilityGrantRequest(BaseModel):
    capability: str = Field(min_length=1)


class ConversationTurnModel(BaseModel):
    content: str
    from_user: bool
    timestamp: float


class CommandModel(BaseModel):
    kind: str
    fields: dict[str, Any] = Field(default_factory=dict)


class RunResponse(BaseModel):
    sequence: int | None = None
    command: CommandModel | None = None
    state: str
    cancelled: bool = False
    handled_locally: bool | None = None
    turns: list[ConversationTurnModel] = Field(default_factory=list)


class GrantResponse(BaseModel):
    capability: str
    resumed: bool
    run: RunResponse | None = None


class PendingCommandModel(BaseModel):
    text: str
    sequence: int
    capability: str


class AssistantStateResponse(BaseModel):
    state: str
    processing: bool
    pending: PendingCommandModel | None = None
    granted_capabilities: list[str] = Field(default_factory=list)
    assistant_name: str
