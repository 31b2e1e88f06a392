"""Tests for SessionStateStore."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from relay.models import Choice
from relay.state import SessionStateStore

WA_ID = "5511999999999"

CHOICES = [Choice(id="choice_0", label="Sim"), Choice(id="choice_1", label="Não")]


class TestActiveFlow:
    """Tests for flow and session binding."""

    async def test_unknown_user_has_no_flow(self, state):
        """Test that a user never seen has no flow or session."""
        assert await state.get_active_flow_id(WA_ID) is None
        assert await state.get_active_session_id(WA_ID) is None

    async def test_set_flow_and_session(self, state, storage):
        """Test that flow and session are cached and written through."""
        await state.set_active_flow_id(WA_ID, "flow-a", "sess-1")

        assert await state.get_active_flow_id(WA_ID) == "flow-a"
        assert await state.get_active_session_id(WA_ID) == "sess-1"

        user = await storage.get_user(WA_ID)
        assert user.active_flow_id == "flow-a"
        assert user.active_session_id == "sess-1"

    async def test_omitted_session_is_left_unchanged(self, state, storage):
        """Test that leaving session_id out keeps the current session."""
        await state.set_active_flow_id(WA_ID, "flow-a", "sess-1")
        await state.set_active_flow_id(WA_ID, "flow-b")

        assert await state.get_active_flow_id(WA_ID) == "flow-b"
        assert await state.get_active_session_id(WA_ID) == "sess-1"
        assert (await storage.get_user(WA_ID)).active_session_id == "sess-1"

    async def test_none_session_clears_it(self, state, storage):
        """Test that session_id=None explicitly clears the session."""
        await state.set_active_flow_id(WA_ID, "flow-a", "sess-1")
        await state.set_active_flow_id(WA_ID, "flow-a", None)

        assert await state.get_active_session_id(WA_ID) is None
        assert (await storage.get_user(WA_ID)).active_session_id is None

    async def test_reads_fall_back_to_storage(self, storage, mock_tracker, clock):
        """Test that a fresh store reads flow bindings from durable storage."""
        await storage.update_user(WA_ID, active_flow_id="flow-a", active_session_id="s")

        fresh = SessionStateStore(storage, mock_tracker, clock=clock)
        assert await fresh.get_active_flow_id(WA_ID) == "flow-a"
        assert await fresh.get_active_session_id(WA_ID) == "s"

    async def test_write_failure_is_raised(self, state, storage):
        """Test that a failed flow write propagates and leaves the cache alone."""
        storage.update_user = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError, match="disk full"):
            await state.set_active_flow_id(WA_ID, "flow-a", "sess-1")

        assert WA_ID not in state._users

    async def test_ensure_user_creates_row(self, state, storage):
        """Test that ensure_user creates the user on first contact."""
        user = await state.ensure_user(WA_ID)

        assert user.wa_id == WA_ID
        assert await storage.get_user(WA_ID) is not None


class TestActiveChoices:
    """Tests for choice sets and their TTL."""

    async def test_set_and_get(self, state):
        """Test that a stored choice set is returned in order."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)

        assert await state.get_active_choices(WA_ID) == CHOICES

    async def test_new_set_replaces_old(self, state):
        """Test that at most one choice set is live per user."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        replacement = [Choice(id="item_0", label="Pizza")]
        await state.set_active_choices(WA_ID, "sess-1", replacement)

        assert await state.get_active_choices(WA_ID) == replacement

    async def test_expired_set_is_evicted(self, state, storage, clock):
        """Test that a choice set older than 30 minutes reads as absent."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)

        clock.advance(minutes=31)

        assert await state.get_active_choices(WA_ID) is None
        assert state.stats()["active_choice_sets"] == 0
        assert await storage.load_active_choices(clock.now) == []

    async def test_set_is_live_before_expiry(self, state, clock):
        """Test that a choice set is still returned within its TTL."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)

        clock.advance(minutes=29)

        assert await state.get_active_choices(WA_ID) == CHOICES

    async def test_replacing_restarts_ttl(self, state, clock):
        """Test that a new choice set gets a fresh 30 minute window."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        clock.advance(minutes=20)
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        clock.advance(minutes=20)

        assert await state.get_active_choices(WA_ID) == CHOICES

    async def test_clear_is_idempotent(self, state, storage, clock):
        """Test that clearing twice, or clearing nothing, leaves no set."""
        await state.clear_active_choices(WA_ID)

        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        await state.clear_active_choices(WA_ID)
        await state.clear_active_choices(WA_ID)

        assert await state.get_active_choices(WA_ID) is None
        assert await storage.load_active_choices(clock.now) == []

    async def test_flow_id_defaults_to_active_flow(self, state):
        """Test that a choice set is tagged with the user's active flow."""
        await state.set_active_flow_id(WA_ID, "flow-a", "sess-1")
        choice_set = await state.set_active_choices(WA_ID, "sess-1", CHOICES)

        assert choice_set.flow_id == "flow-a"

    async def test_durable_failure_keeps_memory(self, state, storage, mock_tracker):
        """Test that a failed durable write is reported, not raised."""
        storage.save_active_choices = AsyncMock(side_effect=RuntimeError("disk full"))

        await state.set_active_choices(WA_ID, "sess-1", CHOICES)

        assert await state.get_active_choices(WA_ID) == CHOICES
        mock_tracker.report.assert_awaited_once()
        args = mock_tracker.report.await_args.args
        assert args[0] == "choices_persist_failed"
        assert args[1] == "state_store"


class TestExpectedInputType:
    """Tests for the expected input type."""

    async def test_set_get_clear(self, state):
        """Test the basic lifecycle of an expected input type."""
        await state.set_expected_input_type(WA_ID, "choice input")
        assert await state.get_expected_input_type(WA_ID) == "choice input"

        await state.clear_expected_input_type(WA_ID)
        assert await state.get_expected_input_type(WA_ID) is None

    async def test_expires_independently_of_choices(self, state, clock):
        """Test that input type and choice set keep separate TTLs."""
        await state.set_expected_input_type(WA_ID, "text input")
        clock.advance(minutes=20)
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        clock.advance(minutes=15)

        assert await state.get_expected_input_type(WA_ID) is None
        assert await state.get_active_choices(WA_ID) == CHOICES

    async def test_reset_user_clears_both(self, state):
        """Test that reset_user drops choices and input type together."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        await state.set_expected_input_type(WA_ID, "choice input")

        await state.reset_user(WA_ID)

        assert await state.get_active_choices(WA_ID) is None
        assert await state.get_expected_input_type(WA_ID) is None


class TestPersistence:
    """Tests for load_persisted and the sweep."""

    async def test_load_persisted_restores_live_entries(
        self, state, storage, mock_tracker, clock
    ):
        """Test that a restarted store sees entries saved before the restart."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        await state.set_expected_input_type(WA_ID, "choice input")

        restarted = SessionStateStore(storage, mock_tracker, clock=clock)
        loaded = await restarted.load_persisted()

        assert loaded == (1, 1)
        assert await restarted.get_active_choices(WA_ID) == CHOICES
        assert await restarted.get_expected_input_type(WA_ID) == "choice input"

    async def test_load_persisted_skips_expired(
        self, state, storage, mock_tracker, clock
    ):
        """Test that rows past their expiry are not loaded."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        clock.advance(minutes=31)

        restarted = SessionStateStore(storage, mock_tracker, clock=clock)

        assert await restarted.load_persisted() == (0, 0)
        assert await restarted.get_active_choices(WA_ID) is None

    async def test_sweep_removes_expired(self, state, storage, clock):
        """Test that sweep evicts expired entries from memory and storage."""
        await state.set_active_choices(WA_ID, "sess-1", CHOICES)
        await state.set_expected_input_type(WA_ID, "choice input")
        await state.set_active_choices("5522222222222", "sess-2", CHOICES)
        clock.advance(minutes=31)
        await state.set_active_choices("5533333333333", "sess-3", CHOICES)

        assert await state.sweep() == (2, 1)

        stats = state.stats()
        assert stats["active_choice_sets"] == 1
        assert stats["expected_inputs"] == 0
        remaining = await storage.load_active_choices(clock.now)
        assert [c.wa_id for c in remaining] == ["5533333333333"]

    async def test_sweep_drops_idle_users(self, state, clock):
        """Test that idle cached users are dropped and reloaded from storage."""
        await state.set_active_flow_id(WA_ID, "vendas", "sess-1")
        await state.set_active_flow_id("5522222222222", "suporte", "sess-2")
        await state.set_active_choices("5522222222222", "sess-2", CHOICES)
        clock.advance(minutes=20)
        await state.get_active_flow_id("5522222222222")
        clock.advance(minutes=11)

        await state.sweep()

        assert state.stats()["cached_users"] == 1
        assert await state.get_active_flow_id(WA_ID) == "vendas"
        assert await state.get_active_session_id(WA_ID) == "sess-1"
        assert state.stats()["cached_users"] == 2

    async def test_sweep_failure_is_reported(self, state, storage, mock_tracker):
        """Test that a durable sweep failure is reported, never raised."""
        storage.delete_expired = AsyncMock(side_effect=RuntimeError("locked"))

        assert await state.sweep() == (0, 0)
        assert mock_tracker.report.await_args.args[0] == "sweep_failed"

    async def test_periodic_sweep(self, storage, mock_tracker, clock):
        """Test that start() runs the sweep on its interval until stop()."""
        store = SessionStateStore(
            storage, mock_tracker, sweep_interval=0.01, clock=clock
        )
        await store.set_active_choices(WA_ID, "sess-1", CHOICES)
        clock.advance(minutes=31)

        await store.start()
        await asyncio.sleep(0.05)
        await store.stop()

        assert store.stats()["active_choice_sets"] == 0
        assert store._sweep_task is None
