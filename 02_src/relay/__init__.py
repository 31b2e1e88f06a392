"""Relay module."""

from .app import Application, IApplication
from .dialogue import (
    DialogueSessionResolver,
    HttpDialogueClient,
    IDialogueClient,
    IDialogueSessionResolver,
)
from .errors import (
    CollaboratorUnavailable,
    LockError,
    RedirectUnresolvable,
    RelayError,
    SessionExpired,
    SessionNotFound,
    TranscriptionError,
    ValidationError,
)
from .matching import IInputResolutionEngine, InputResolutionEngine
from .models import (
    Choice,
    ChoiceSet,
    DialogueResponse,
    ExpectedInput,
    InboundMessage,
    Match,
    TraceEvent,
    User,
)
from .pipeline import ITranscriber, MessagePipeline, PipelineResult
from .state import IUserLock, SessionStateStore, UserLock
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "User",
    "InboundMessage",
    "Choice",
    "ChoiceSet",
    "ExpectedInput",
    "Match",
    "DialogueResponse",
    "TraceEvent",
    # Errors
    "RelayError",
    "ValidationError",
    "SessionExpired",
    "SessionNotFound",
    "CollaboratorUnavailable",
    "RedirectUnresolvable",
    "LockError",
    "TranscriptionError",
    # Components
    "IStorage",
    "Storage",
    "ITracker",
    "Tracker",
    "IUserLock",
    "UserLock",
    "SessionStateStore",
    "IInputResolutionEngine",
    "InputResolutionEngine",
    "IDialogueClient",
    "HttpDialogueClient",
    "IDialogueSessionResolver",
    "DialogueSessionResolver",
    "ITranscriber",
    "MessagePipeline",
    "PipelineResult",
]
