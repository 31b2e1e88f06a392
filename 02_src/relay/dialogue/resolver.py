"""DialogueSessionResolver: continue or restart the remote dialogue session.

States per user:
    NoSession --start--> Active
    Active --continue--> Active
    Active --session not found--> NoSession --start (once)--> Active
A redirect in any response rebinds the session to another flow without
changing the session id.
"""

import re
from typing import Protocol

from ..errors import SessionExpired
from ..logging_config import get_logger
from ..models import DialogueResponse
from ..state import SessionStateStore
from ..tracker import ITracker
from .client import IDialogueClient
from .redirect import extract_flow_id

logger = get_logger(__name__)

_SESSION_ID = re.compile(r"^\S{1,128}$")


def is_valid_session_id(session_id: str | None) -> bool:
    """Whether ``session_id`` looks like something the remote service issued."""
    return isinstance(session_id, str) and bool(_SESSION_ID.match(session_id))


class IDialogueSessionResolver(Protocol):
    """Drives the remote dialogue for one user message."""

    async def advance(self, wa_id: str, message: str) -> DialogueResponse:
        """Continue or start the user's session with ``message``."""
        ...

    async def reset(self, wa_id: str, message: str | None = None) -> DialogueResponse:
        """Rebind the user to the default flow and start a fresh session."""
        ...


class DialogueSessionResolver:
    """Picks continue/start, recovers expired sessions, applies redirects."""

    def __init__(
        self,
        client: IDialogueClient,
        state: SessionStateStore,
        tracker: ITracker,
        default_flow_id: str,
    ):
        self._client = client
        self._state = state
        self._tracker = tracker
        self._default_flow_id = default_flow_id

    async def advance(self, wa_id: str, message: str) -> DialogueResponse:
        """Continue or start the user's session with ``message``.

        A "session not found" answer clears the stored session and retries once
        as a new session. Redirects are resolved before returning.

        Raises:
            CollaboratorUnavailable: if the remote service keeps failing.
            SessionExpired: if the fresh session is rejected as well.
        """
        flow_id = await self._state.get_active_flow_id(wa_id)
        session_id = await self._state.get_active_session_id(wa_id)
        will_continue = is_valid_session_id(session_id)

        logger.info(
            "Dialogue decision for %s: %s",
            wa_id,
            "continue" if will_continue else "start",
            extra={
                "context": {
                    "wa_id": wa_id,
                    "session_id": session_id,
                    "flow_id": flow_id or self._default_flow_id,
                }
            },
        )

        if will_continue:
            try:
                response = await self._client.continue_chat(session_id, message)
            except SessionExpired:
                logger.info(
                    "Session %s expired for %s, starting a new one", session_id, wa_id
                )
                await self._tracker.track(
                    "session_expired",
                    "dialogue_resolver",
                    {"wa_id": wa_id, "expired_session_id": session_id},
                )
                await self._state.set_active_flow_id(
                    wa_id, flow_id or self._default_flow_id, None
                )
                response = await self._start(wa_id, flow_id, message)
            else:
                response.flow_id = flow_id or self._default_flow_id
                if response.session_id != session_id:
                    await self._state.set_active_flow_id(
                        wa_id, response.flow_id, response.session_id
                    )
        else:
            response = await self._start(wa_id, flow_id, message)

        await self._apply_redirect(wa_id, response)
        return response

    async def reset(self, wa_id: str, message: str | None = None) -> DialogueResponse:
        """Rebind the user to the default flow and start a fresh session."""
        logger.info("Resetting %s to flow %s", wa_id, self._default_flow_id)
        await self._state.set_active_flow_id(wa_id, self._default_flow_id, None)

        response = await self._start(wa_id, self._default_flow_id, message)
        await self._apply_redirect(wa_id, response)
        return response

    async def _start(
        self, wa_id: str, flow_id: str | None, message: str | None
    ) -> DialogueResponse:
        target = flow_id or self._default_flow_id
        response = await self._client.start(target, message)
        response.flow_id = target
        await self._state.set_active_flow_id(wa_id, target, response.session_id)
        return response

    async def _apply_redirect(self, wa_id: str, response: DialogueResponse) -> None:
        redirect = response.find_redirect()
        if redirect is None:
            return

        context = {
            "wa_id": wa_id,
            "session_id": response.session_id,
            "redirect_url": redirect.url,
        }
        try:
            new_flow_id = extract_flow_id(redirect.url)
            await self._client.update_flow(response.session_id, new_flow_id)
        except Exception as e:
            # The response is still delivered, bound to the old flow
            await self._tracker.report(
                "redirect_failed", "dialogue_resolver", e, context, level="warning"
            )
            return

        await self._state.set_active_flow_id(wa_id, new_flow_id)
        response.flow_id = new_flow_id

        logger.info("Redirected %s to flow %s", wa_id, new_flow_id)
        await self._tracker.track(
            "redirect_applied",
            "dialogue_resolver",
            {**context, "flow_id": new_flow_id},
        )
