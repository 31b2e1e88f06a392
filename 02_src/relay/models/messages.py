"""Message-related data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A chat user, keyed by channel identity."""

    wa_id: str
    active_flow_id: str | None = None
    active_session_id: str | None = None
    last_notified_at: datetime | None = None


@dataclass
class InboundMessage:
    """A message received from a channel adapter."""

    id: str
    wa_id: str
    type: str  # "text", "audio", "interactive", "button", ...
    content: str
    timestamp: datetime
    media_url: str | None = None
    transcription: str | None = None
    name: str | None = None


@dataclass
class OutboundMessage:
    """A message produced by the remote flow, ready for a channel adapter."""

    type: str  # "text", "image", "video", "audio", "embed"
    text: str = ""
    url: str | None = None
