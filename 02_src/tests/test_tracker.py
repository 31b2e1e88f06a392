"""Tests for Tracker."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from relay.errors import CollaboratorUnavailable


class TestTrackerTrack:
    """Tests for Tracker.track() method."""

    @pytest.mark.asyncio
    async def test_track_creates_event(self, tracker, storage):
        """Test that track() creates a TraceEvent."""
        await tracker.track(
            event_type="choice_matched",
            actor="pipeline",
            data={"wa_id": "5511999999999", "choice_id": "choice_1"},
        )

        events = await storage.get_trace_events()
        assert len(events) == 1
        assert events[0].event_type == "choice_matched"
        assert events[0].actor == "pipeline"
        assert events[0].level == "info"
        assert events[0].data == {"wa_id": "5511999999999", "choice_id": "choice_1"}

    @pytest.mark.asyncio
    async def test_track_generates_id_and_timestamp(self, tracker, storage):
        """Test that track() fills in ID and timestamp."""
        before = datetime.now(timezone.utc)
        await tracker.track(event_type="test_event", actor="test_actor", data={})
        after = datetime.now(timezone.utc)

        events = await storage.get_trace_events()
        assert events[0].id
        assert before <= events[0].timestamp <= after

    @pytest.mark.asyncio
    async def test_track_never_raises(self, tracker, storage):
        """Test that a storage failure does not escape track()."""
        storage.save_trace_event = AsyncMock(side_effect=RuntimeError("disk full"))

        await tracker.track(event_type="test_event", actor="test_actor", data={})


class TestTrackerReport:
    """Tests for Tracker.report() method."""

    @pytest.mark.asyncio
    async def test_report_records_error_details(self, tracker, storage):
        """Test that report() stores the error message, type and code."""
        error = CollaboratorUnavailable("Dialogue API unavailable", status_code=503)

        await tracker.report(
            "message_failed", "pipeline", error, {"wa_id": "5511999999999"}
        )

        events = await storage.get_trace_events(event_types=["message_failed"])
        assert len(events) == 1
        assert events[0].level == "error"
        assert events[0].data == {
            "wa_id": "5511999999999",
            "error": "Dialogue API unavailable",
            "error_type": "CollaboratorUnavailable",
            "code": "collaborator_unavailable",
        }

    @pytest.mark.asyncio
    async def test_report_accepts_plain_message(self, tracker, storage):
        """Test that report() accepts a string instead of an exception."""
        await tracker.report("redirect_failed", "resolver", "bad url", level="warning")

        events = await storage.get_trace_events()
        assert events[0].level == "warning"
        assert events[0].data == {"error": "bad url"}
