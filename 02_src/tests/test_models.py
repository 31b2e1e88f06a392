"""Tests for data models."""

from datetime import datetime, timedelta, timezone

from relay.models import (
    Choice,
    ChoiceSet,
    ClientAction,
    DialogueResponse,
    InputSpec,
    Match,
    Redirect,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestChoiceSet:
    """Tests for ChoiceSet expiry."""

    def test_expiry_is_strictly_after(self):
        """Test that a set is live at its expiry instant and expired after it."""
        choice_set = ChoiceSet(
            wa_id="5511999999999",
            session_id="sess-1",
            choices=[Choice(id="choice_0", label="Sim")],
            created_at=NOW,
            expires_at=NOW + timedelta(minutes=30),
        )

        assert not choice_set.is_expired(NOW + timedelta(minutes=30))
        assert choice_set.is_expired(NOW + timedelta(minutes=30, seconds=1))


class TestMatch:
    """Tests for Match equality."""

    def test_stage_is_ignored_in_equality(self):
        assert Match("choice_0", "Sim", 1.0, stage="numeric") == Match(
            "choice_0", "Sim", 1.0, stage="containment"
        )


class TestDialogueResponse:
    """Tests for redirect lookup and input kinds."""

    def test_no_redirect(self):
        assert DialogueResponse(session_id="s").find_redirect() is None

    def test_ignores_non_redirect_actions(self):
        response = DialogueResponse(
            session_id="s",
            actions=[
                ClientAction(type="wait", payload={"secondsToWaitFor": 2}),
                ClientAction(type="redirect", redirect=Redirect(url="https://x/a")),
            ],
        )

        assert response.find_redirect().url == "https://x/a"

    def test_input_kind(self):
        assert InputSpec(kind="choice input").is_choice
        assert not InputSpec(kind="text input").is_choice
