"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single observability event."""

    id: str
    event_type: str  # e.g. "choice_matched", "redirect_failed"
    actor: str  # who created this event
    data: dict
    timestamp: datetime
    level: str = "info"
