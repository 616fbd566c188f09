from typing import Any

from pydantic import BaseModel, Field


class ProviderCallConfig(BaseModel):
    """What the client needs to place the call: the created assistant and its config."""

    session_id: str
    assistant_id: str
    assistant: dict[str, Any]
    max_duration_seconds: int
    webhook_url: str


class WebhookAck(BaseModel):
    accepted: bool = True
    event: str | None = None
    analysis_applied: bool = False


class AssistantMessage(BaseModel):
    type: str = "text"
    content: str


class TurnResponse(BaseModel):
    assistant: AssistantMessage
    state: str
    end_call: bool = Field(default=False, serialization_alias="endCall")
    discarded: bool = False
