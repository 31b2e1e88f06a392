"""SessionStateStore: per-user flow, session, choice and expected-input state.

Choice sets and expected input types live in memory with a TTL and are
mirrored to durable storage on a best-effort basis. The in-memory cache is
authoritative while the process runs; durable rows only matter on restart.
Flow and session ids are written through to the users table. Cached users idle
longer than the TTL are dropped by the sweep and reloaded on next access.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from ..logging_config import get_logger
from ..models import Choice, ChoiceSet, ExpectedInput, User
from ..storage import IStorage
from ..tracker import ITracker

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks "leave the session id unchanged" in set_active_flow_id
UNSET = _Unset()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStateStore:
    """Hybrid in-memory/durable state per user, with TTL expiry."""

    def __init__(
        self,
        storage: IStorage,
        tracker: ITracker | None = None,
        ttl: timedelta = timedelta(minutes=30),
        sweep_interval: float = 300.0,
        clock: Clock | None = None,
    ):
        self._storage = storage
        self._tracker = tracker
        self._ttl = ttl
        self._sweep_interval = sweep_interval
        self._clock = clock or utc_now

        self._users: dict[str, User] = {}
        self._user_seen: dict[str, datetime] = {}
        self._choices: dict[str, ChoiceSet] = {}
        self._inputs: dict[str, ExpectedInput] = {}
        self._sweep_task: asyncio.Task | None = None

    # Lifecycle
    async def load_persisted(self) -> tuple[int, int]:
        """Repopulate the caches from durable storage, skipping expired rows."""
        now = self._clock()

        choice_sets = await self._storage.load_active_choices(now)
        for choice_set in choice_sets:
            self._choices[choice_set.wa_id] = choice_set

        inputs = await self._storage.load_expected_inputs(now)
        for expected in inputs:
            self._inputs[expected.wa_id] = expected

        logger.info(
            "Loaded %s choice sets and %s expected inputs from storage",
            len(choice_sets),
            len(inputs),
        )
        return len(choice_sets), len(inputs)

    async def start(self) -> None:
        """Start the periodic sweep."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    def clear_cache(self) -> None:
        """Drop every cached entry (durable rows are untouched)."""
        self._users.clear()
        self._user_seen.clear()
        self._choices.clear()
        self._inputs.clear()

    # Flow / session
    async def ensure_user(self, wa_id: str) -> User:
        """Return the user, creating it on first contact."""
        user = self._users.get(wa_id)
        if user is not None:
            self._user_seen[wa_id] = self._clock()
            return user

        try:
            user = await self._storage.ensure_user(wa_id)
        except Exception as e:
            logger.error("Failed to ensure user %s: %s", wa_id, e, exc_info=True)
            raise

        self._cache_user(user)
        return user

    async def get_active_flow_id(self, wa_id: str) -> str | None:
        user = await self._get_user(wa_id)
        return user.active_flow_id if user else None

    async def get_active_session_id(self, wa_id: str) -> str | None:
        user = await self._get_user(wa_id)
        return user.active_session_id if user else None

    async def set_active_flow_id(
        self,
        wa_id: str,
        flow_id: str,
        session_id: str | None | _Unset = UNSET,
    ) -> None:
        """Bind a user to a flow.

        ``session_id=None`` clears the active session; leaving it out keeps it.
        """
        fields: dict = {"active_flow_id": flow_id}
        if session_id is not UNSET:
            fields["active_session_id"] = session_id

        try:
            await self._storage.update_user(wa_id, **fields)
        except Exception as e:
            logger.error(
                "Failed to persist active flow for %s: %s", wa_id, e, exc_info=True
            )
            raise

        user = self._users.get(wa_id) or User(wa_id=wa_id)
        user.active_flow_id = flow_id
        if session_id is not UNSET:
            user.active_session_id = session_id
        self._cache_user(user)

        choice_set = self._choices.get(wa_id)
        if choice_set:
            choice_set.flow_id = flow_id

        logger.debug(
            "Active flow for %s set to %s (session %s)",
            wa_id,
            flow_id,
            "cleared" if session_id is None else session_id,
        )

    async def _get_user(self, wa_id: str) -> User | None:
        user = self._users.get(wa_id)
        if user is not None:
            self._user_seen[wa_id] = self._clock()
            return user

        try:
            user = await self._storage.get_user(wa_id)
        except Exception as e:
            logger.error("Failed to load user %s: %s", wa_id, e, exc_info=True)
            raise

        if user is not None:
            self._cache_user(user)
        return user

    def _cache_user(self, user: User) -> None:
        self._users[user.wa_id] = user
        self._user_seen[user.wa_id] = self._clock()

    # Choices
    async def set_active_choices(
        self,
        wa_id: str,
        session_id: str,
        choices: list[Choice],
        flow_id: str | None = None,
    ) -> ChoiceSet:
        """Replace the user's choice set and restart its TTL."""
        now = self._clock()
        if flow_id is None and wa_id in self._users:
            flow_id = self._users[wa_id].active_flow_id

        choice_set = ChoiceSet(
            wa_id=wa_id,
            session_id=session_id,
            choices=list(choices),
            created_at=now,
            expires_at=now + self._ttl,
            flow_id=flow_id,
        )
        self._choices[wa_id] = choice_set

        logger.debug(
            "Active choices set for %s: %s choices (session %s)",
            wa_id,
            len(choices),
            session_id,
        )
        await self._persist(
            self._storage.save_active_choices(choice_set),
            "choices_persist_failed",
            wa_id,
        )
        return choice_set

    async def get_choice_set(self, wa_id: str) -> ChoiceSet | None:
        """Return the live choice set, evicting it if expired."""
        choice_set = self._choices.get(wa_id)
        if choice_set is None:
            return None

        if choice_set.is_expired(self._clock()):
            self._choices.pop(wa_id, None)
            logger.debug(
                "Active choices for %s expired (session %s)",
                wa_id,
                choice_set.session_id,
            )
            await self._persist(
                self._storage.delete_active_choices(wa_id),
                "choices_delete_failed",
                wa_id,
            )
            return None

        return choice_set

    async def get_active_choices(self, wa_id: str) -> list[Choice] | None:
        choice_set = await self.get_choice_set(wa_id)
        return list(choice_set.choices) if choice_set else None

    async def clear_active_choices(self, wa_id: str) -> None:
        """Remove the user's choice set. Safe to call when there is none."""
        choice_set = self._choices.pop(wa_id, None)
        if choice_set:
            logger.debug("Active choices cleared for %s", wa_id)
        await self._persist(
            self._storage.delete_active_choices(wa_id),
            "choices_delete_failed",
            wa_id,
        )

    # Expected input type
    async def set_expected_input_type(self, wa_id: str, kind: str) -> ExpectedInput:
        """Record the input kind the flow waits for and restart its TTL."""
        now = self._clock()
        expected = ExpectedInput(
            wa_id=wa_id,
            kind=kind,
            created_at=now,
            expires_at=now + self._ttl,
        )
        self._inputs[wa_id] = expected

        await self._persist(
            self._storage.save_expected_input(expected),
            "expected_input_persist_failed",
            wa_id,
        )
        return expected

    async def get_expected_input_type(self, wa_id: str) -> str | None:
        expected = self._inputs.get(wa_id)
        if expected is None:
            return None

        if expected.is_expired(self._clock()):
            self._inputs.pop(wa_id, None)
            await self._persist(
                self._storage.delete_expected_input(wa_id),
                "expected_input_delete_failed",
                wa_id,
            )
            return None

        return expected.kind

    async def clear_expected_input_type(self, wa_id: str) -> None:
        self._inputs.pop(wa_id, None)
        await self._persist(
            self._storage.delete_expected_input(wa_id),
            "expected_input_delete_failed",
            wa_id,
        )

    async def reset_user(self, wa_id: str) -> None:
        """Drop the choice set and expected input of a user."""
        await self.clear_active_choices(wa_id)
        await self.clear_expected_input_type(wa_id)

    # Sweep
    async def sweep(self) -> tuple[int, int]:
        """Remove expired entries from memory and durable storage."""
        now = self._clock()

        # No awaits between scan and eviction, so no holder can interleave
        expired_choices = [k for k, v in self._choices.items() if v.is_expired(now)]
        for wa_id in expired_choices:
            self._choices.pop(wa_id, None)
        expired_inputs = [k for k, v in self._inputs.items() if v.is_expired(now)]
        for wa_id in expired_inputs:
            self._inputs.pop(wa_id, None)
        idle_users = [
            wa_id
            for wa_id, seen in self._user_seen.items()
            if now - seen > self._ttl
            and wa_id not in self._choices
            and wa_id not in self._inputs
        ]
        for wa_id in idle_users:
            self._users.pop(wa_id, None)
            self._user_seen.pop(wa_id, None)

        try:
            await self._storage.delete_expired(now)
        except Exception as e:
            await self._report("sweep_failed", e, {})

        if expired_choices or expired_inputs or idle_users:
            logger.debug(
                "Swept %s choice sets, %s expected inputs and %s idle users",
                len(expired_choices),
                len(expired_inputs),
                len(idle_users),
            )
        return len(expired_choices), len(expired_inputs)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error("State sweep failed: %s", e, exc_info=True)

    def stats(self) -> dict:
        return {
            "cached_users": len(self._users),
            "active_choice_sets": len(self._choices),
            "expected_inputs": len(self._inputs),
        }

    # Durability
    async def _persist(self, write: Awaitable[None], event_type: str, wa_id: str) -> None:
        try:
            await write
        except Exception as e:
            await self._report(event_type, e, {"wa_id": wa_id})

    async def _report(self, event_type: str, error: Exception, data: dict) -> None:
        if self._tracker:
            await self._tracker.report(event_type, "state_store", error, data)
        else:
            logger.error("%s: %s", event_type, error, extra={"context": data})
