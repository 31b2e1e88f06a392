"""Choice and expected-input data models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Choice:
    """A selectable option presented to the user."""

    id: str
    label: str


@dataclass
class ChoiceSet:
    """The options a user is currently expected to pick from."""

    wa_id: str
    session_id: str
    choices: list[Choice]
    created_at: datetime
    expires_at: datetime
    flow_id: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class ExpectedInput:
    """The kind of input the remote flow is waiting for."""

    wa_id: str
    kind: str  # e.g. "choice input", "file input"
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class Match:
    """A choice picked by the input resolution engine."""

    choice_id: str
    content: str
    score: float
    stage: str = field(default="fuzzy", compare=False)
