"""Per-user state: serialization lock and session state store."""

from .lock import IUserLock, UserLock
from .store import UNSET, SessionStateStore

__all__ = ["IUserLock", "UserLock", "SessionStateStore", "UNSET"]
