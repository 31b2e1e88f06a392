"""Core data models for the relay."""

from .choices import Choice, ChoiceSet, ExpectedInput, Match
from .dialogue import ClientAction, DialogueResponse, InputSpec, Redirect
from .messages import InboundMessage, OutboundMessage, User
from .tracing import TraceEvent

__all__ = [
    # Messages
    "User",
    "InboundMessage",
    "OutboundMessage",
    # Choices
    "Choice",
    "ChoiceSet",
    "ExpectedInput",
    "Match",
    # Dialogue
    "DialogueResponse",
    "InputSpec",
    "Redirect",
    "ClientAction",
    # Tracing
    "TraceEvent",
]
