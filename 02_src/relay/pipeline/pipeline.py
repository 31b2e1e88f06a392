"""MessagePipeline: per-message orchestration of lock, state, matching and dialogue."""

import asyncio
import re
import time
from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from ..dialogue import IDialogueSessionResolver
from ..errors import TranscriptionDisabled, TranscriptionError, ValidationError
from ..logging_config import get_logger
from ..matching import IInputResolutionEngine
from ..models import DialogueResponse, InboundMessage, Match
from ..state import IUserLock, SessionStateStore
from ..tracker import ITracker

logger = get_logger(__name__)

# Message types whose content is free-form text worth matching against choices
MATCHABLE_TYPES = ("text", "audio")


class ITranscriber(Protocol):
    """Speech-to-text collaborator."""

    async def transcribe(self, message: InboundMessage) -> str:
        """Return the transcribed text of an audio message."""
        ...


@dataclass
class PipelineResult:
    """Outcome of processing one inbound message."""

    message_id: str
    wa_id: str
    success: bool
    response: DialogueResponse | None = None
    effective_text: str | None = None
    matched_choice: Match | None = None
    error: str | None = None
    code: str | None = None
    duration_ms: int = 0


class MessagePipeline:
    """Composes lock, state store, input resolution and dialogue resolution."""

    def __init__(
        self,
        lock: IUserLock,
        state: SessionStateStore,
        engine: IInputResolutionEngine,
        resolver: IDialogueSessionResolver,
        tracker: ITracker,
        transcriber: ITranscriber | None = None,
        wa_id_pattern: str = r"^\d{10,15}$",
        reset_keywords: list[str] | None = None,
    ):
        self._lock = lock
        self._state = state
        self._engine = engine
        self._resolver = resolver
        self._tracker = tracker
        self._transcriber = transcriber
        self._wa_id_pattern = re.compile(wa_id_pattern)
        self._reset_keywords = {
            keyword.strip().upper() for keyword in (reset_keywords or ["VOLTAR"])
        }
        self._tasks: set[asyncio.Task] = set()

    async def process(self, message: InboundMessage) -> PipelineResult:
        """Process one message under the sender's lock. Never raises."""
        started = time.monotonic()
        try:
            self.validate(message)
            result = await self._lock.run(message.wa_id, self._process_locked, message)
        except Exception as e:
            duration_ms = int((time.monotonic() - started) * 1000)
            await self._tracker.report(
                "message_failed",
                "pipeline",
                e,
                {
                    "wa_id": message.wa_id,
                    "message_id": message.id,
                    "duration_ms": duration_ms,
                },
            )
            return PipelineResult(
                message_id=message.id,
                wa_id=message.wa_id,
                success=False,
                error=str(e),
                code=getattr(e, "code", "internal_error"),
                duration_ms=duration_ms,
            )

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Message %s from %s processed in %sms",
            message.id,
            message.wa_id,
            result.duration_ms,
        )
        return result

    def validate(self, message: InboundMessage) -> None:
        """Reject malformed user identities before any state is touched."""
        if not isinstance(message.wa_id, str) or not self._wa_id_pattern.match(
            message.wa_id
        ):
            raise ValidationError(f"Invalid user id format: {message.wa_id!r}")

    async def consume(self, source: AsyncIterator[InboundMessage]) -> None:
        """Process every message from ``source``, one task per message.

        Messages of different users run concurrently; the lock serializes
        messages of the same user in arrival order.
        """
        async for message in source:
            task = asyncio.create_task(self.process(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every in-flight message task."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _process_locked(self, message: InboundMessage) -> PipelineResult:
        wa_id = message.wa_id
        await self._state.ensure_user(wa_id)

        if message.type == "text" and message.content.strip().upper() in self._reset_keywords:
            logger.info("User %s requested a reset", wa_id)
            await self._state.reset_user(wa_id)
            response = await self._resolver.reset(wa_id)
            await self._record_input(wa_id, response)
            return PipelineResult(
                message_id=message.id,
                wa_id=wa_id,
                success=True,
                response=response,
                effective_text=None,
            )

        text = await self._effective_text(message)

        matched = None
        if message.type in MATCHABLE_TYPES and text.strip():
            matched = await self._match_choice(wa_id, text)
            if matched:
                text = matched.content

        response = await self._resolver.advance(wa_id, text)
        await self._record_input(wa_id, response)

        return PipelineResult(
            message_id=message.id,
            wa_id=wa_id,
            success=True,
            response=response,
            effective_text=text,
            matched_choice=matched,
        )

    async def _effective_text(self, message: InboundMessage) -> str:
        if message.type != "audio":
            return message.content

        if message.transcription is None:
            if self._transcriber is None:
                raise TranscriptionDisabled("Audio received but transcription is disabled")
            try:
                message.transcription = await self._transcriber.transcribe(message)
            except TranscriptionError:
                raise
            except Exception as e:
                raise TranscriptionError(f"Transcription failed: {e}") from e

        return message.transcription

    async def _match_choice(self, wa_id: str, text: str) -> Match | None:
        choices = await self._state.get_active_choices(wa_id)
        if not choices:
            return None

        matched = self._engine.resolve(text, choices)
        if matched is None:
            await self._tracker.track(
                "choice_not_matched",
                "pipeline",
                {"wa_id": wa_id, "choices_count": len(choices)},
            )
            return None

        await self._state.clear_active_choices(wa_id)
        await self._tracker.track(
            "choice_matched",
            "pipeline",
            {
                "wa_id": wa_id,
                "choice_id": matched.choice_id,
                "stage": matched.stage,
                "score": matched.score,
            },
        )
        return matched

    async def _record_input(self, wa_id: str, response: DialogueResponse) -> None:
        """Remember what the flow waits for next."""
        next_input = response.input
        if next_input is None:
            await self._state.clear_active_choices(wa_id)
            await self._state.clear_expected_input_type(wa_id)
            return

        await self._state.set_expected_input_type(wa_id, next_input.kind)
        if next_input.is_choice and next_input.choices:
            await self._state.set_active_choices(
                wa_id, response.session_id, next_input.choices, flow_id=response.flow_id
            )
        else:
            await self._state.clear_active_choices(wa_id)
