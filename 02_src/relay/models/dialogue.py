"""Dialogue-turn data models exchanged with the remote flow."""

from dataclasses import dataclass, field

from .choices import Choice
from .messages import OutboundMessage

CHOICE_INPUT = "choice input"


@dataclass
class Redirect:
    """Instruction to rebind the current session to another flow."""

    url: str
    is_new_tab: bool = False


@dataclass
class ClientAction:
    """A side-effect action attached to a flow response."""

    type: str
    redirect: Redirect | None = None
    payload: dict = field(default_factory=dict)


@dataclass
class InputSpec:
    """The input the remote flow asks for next."""

    kind: str
    id: str | None = None
    choices: list[Choice] = field(default_factory=list)

    @property
    def is_choice(self) -> bool:
        return self.kind == CHOICE_INPUT


@dataclass
class DialogueResponse:
    """One response from the remote flow."""

    session_id: str
    messages: list[OutboundMessage] = field(default_factory=list)
    input: InputSpec | None = None
    redirect: Redirect | None = None
    actions: list[ClientAction] = field(default_factory=list)
    flow_id: str | None = None  # flow bound to the session after redirects

    def find_redirect(self) -> Redirect | None:
        """Return the top-level redirect, or the first one in the action list."""
        if self.redirect and self.redirect.url:
            return self.redirect
        for action in self.actions:
            if action.type == "redirect" and action.redirect and action.redirect.url:
                return action.redirect
        return None
