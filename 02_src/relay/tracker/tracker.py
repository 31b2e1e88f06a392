"""Tracker implementation: the observability sink of the relay."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..logging_config import get_logger
from ..models import TraceEvent
from ..storage import IStorage

logger = get_logger(__name__)


class ITracker(Protocol):
    """Structured event and failure reporting. Never raises."""

    async def track(
        self, event_type: str, actor: str, data: dict, level: str = "info"
    ) -> None:
        """Create TraceEvent and save to Storage."""
        ...

    async def report(
        self,
        event_type: str,
        actor: str,
        error: BaseException | str,
        data: dict | None = None,
        level: str = "error",
    ) -> None:
        """Log a recoverable failure and record it as a TraceEvent."""
        ...


class Tracker:
    """Creates TraceEvents via direct track()/report() calls."""

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def track(
        self, event_type: str, actor: str, data: dict, level: str = "info"
    ) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=datetime.now(timezone.utc),
            level=level,
        )
        try:
            await self._storage.save_trace_event(trace_event)
        except Exception as e:
            # The sink must not turn an observability failure into a message failure
            logger.warning("Failed to persist trace event %s: %s", event_type, e)

    async def report(
        self,
        event_type: str,
        actor: str,
        error: BaseException | str,
        data: dict | None = None,
        level: str = "error",
    ) -> None:
        """Log a recoverable failure and record it as a TraceEvent."""
        details = dict(data or {})
        details["error"] = str(error)
        if isinstance(error, BaseException):
            details["error_type"] = type(error).__name__
            details["code"] = getattr(error, "code", None)

        log = logger.warning if level == "warning" else logger.error
        log("%s reported by %s: %s", event_type, actor, error, extra={"context": details})

        await self.track(event_type, actor, details, level=level)
