"""Error taxonomy for the relay core.

Input resolution finding nothing is not an error: the engine returns ``None``.
"""


class RelayError(Exception):
    """Base class for relay failures scoped to a single message."""

    code = "relay_error"


class ValidationError(RelayError):
    """Malformed user identity or message, rejected before any state is touched."""

    code = "invalid_wa_id"


class SessionExpired(RelayError):
    """The remote dialogue session is gone; the caller may restart it."""

    code = "session_expired"


class SessionNotFound(SessionExpired):
    """Raised by dialogue collaborators when the remote session id is unknown."""

    code = "session_not_found"


class CollaboratorUnavailable(RelayError):
    """A collaborator failed after exhausting its own retries."""

    code = "collaborator_unavailable"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RedirectUnresolvable(RelayError):
    """A redirect instruction could not be turned into a flow id."""

    code = "invalid_redirect_url"


class LockError(RelayError):
    """Illegal use of the per-user lock."""

    code = "lock_error"


class TranscriptionError(RelayError):
    """Audio could not be turned into text."""

    code = "transcription_failed"


class TranscriptionDisabled(TranscriptionError):
    """Audio arrived but no transcriber is configured."""

    code = "transcription_disabled"
