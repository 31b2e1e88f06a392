"""Messaging API routes."""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field
from fastapi import APIRouter

from ...app import Application
from ...models import InboundMessage


class MessageRequest(BaseModel):
    """Inbound message as delivered by a channel adapter."""

    wa_id: str
    type: str = "text"
    content: str = ""
    id: str | None = None
    media_url: str | None = None
    transcription: str | None = None
    name: str | None = None


class OutboundMessageModel(BaseModel):
    type: str
    text: str = ""
    url: str | None = None


class ChoiceModel(BaseModel):
    id: str
    label: str


class InputModel(BaseModel):
    kind: str
    choices: list[ChoiceModel] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """Outcome of one message; failures are reported in-band."""

    message_id: str
    success: bool
    messages: list[OutboundMessageModel] = Field(default_factory=list)
    input: InputModel | None = None
    flow_id: str | None = None
    matched_choice_id: str | None = None
    error: str | None = None
    code: str | None = None


def create_messaging_router(app: Application) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.post("/messages", response_model=MessageResponse)
    async def receive_message(request: MessageRequest) -> dict:
        """Run one inbound message through the pipeline."""
        message = InboundMessage(
            id=request.id or str(uuid.uuid4()),
            wa_id=request.wa_id,
            type=request.type,
            content=request.content,
            timestamp=datetime.now(timezone.utc),
            media_url=request.media_url,
            transcription=request.transcription,
            name=request.name,
        )
        result = await app.pipeline.process(message)

        body: dict = {
            "message_id": result.message_id,
            "success": result.success,
            "error": result.error,
            "code": result.code,
            "matched_choice_id": (
                result.matched_choice.choice_id if result.matched_choice else None
            ),
        }
        response = result.response
        if response is not None:
            body["flow_id"] = response.flow_id
            body["messages"] = [
                {"type": m.type, "text": m.text, "url": m.url}
                for m in response.messages
            ]
            if response.input is not None:
                body["input"] = {
                    "kind": response.input.kind,
                    "choices": [
                        {"id": c.id, "label": c.label} for c in response.input.choices
                    ],
                }
        return body

    return router
