"""Dialogue module."""

from .client import HttpDialogueClient, IDialogueClient, parse_response
from .redirect import extract_flow_id
from .resolver import (
    DialogueSessionResolver,
    IDialogueSessionResolver,
    is_valid_session_id,
)

__all__ = [
    "DialogueSessionResolver",
    "HttpDialogueClient",
    "IDialogueClient",
    "IDialogueSessionResolver",
    "extract_flow_id",
    "is_valid_session_id",
    "parse_response",
]
