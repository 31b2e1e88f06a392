"""Dialogue collaborator: the remote flow service.

``HttpDialogueClient`` talks to a Typebot-compatible chat API over httpx and
converts its JSON into ``DialogueResponse`` objects. Retries for transport
errors and 5xx responses live here, not in the relay core.
"""

import asyncio
from typing import Any, Protocol

import httpx

from ..errors import CollaboratorUnavailable, SessionNotFound
from ..logging_config import get_logger
from ..models import (
    Choice,
    ClientAction,
    DialogueResponse,
    InputSpec,
    OutboundMessage,
    Redirect,
)

logger = get_logger(__name__)


class IDialogueClient(Protocol):
    """Start, continue and rebind remote dialogue sessions."""

    async def start(
        self, flow_id: str | None = None, message: str | None = None
    ) -> DialogueResponse:
        """Start a new session on ``flow_id`` (default flow when None)."""
        ...

    async def continue_chat(self, session_id: str, message: str) -> DialogueResponse:
        """Send a message to an existing session.

        Raises:
            SessionNotFound: if the remote service no longer knows the session.
        """
        ...

    async def update_flow(self, session_id: str, flow_id: str) -> None:
        """Rebind an existing session to another flow."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


def _node_text(node: dict) -> str:
    if node.get("text"):
        return node["text"]
    children = node.get("children")
    if isinstance(children, list):
        return "".join(_node_text(child) for child in children)
    return ""


def extract_text(content: dict) -> str:
    """Flatten a rich-text message body into plain text, one line per block."""
    rich_text = content.get("richText") or []
    return "\n".join(_node_text(block) for block in rich_text).strip()


def extract_choices(raw_input: dict) -> list[Choice]:
    """Choices of a choice input, from ``options.labels`` or else ``items``."""
    labels = (raw_input.get("options") or {}).get("labels") or []
    if labels:
        return [
            Choice(id=f"choice_{index}", label=str(label))
            for index, label in enumerate(labels)
        ]

    choices = []
    for index, item in enumerate(raw_input.get("items") or []):
        label = item.get("content") or item.get("title") or item.get("label") or ""
        choices.append(Choice(id=item.get("id") or f"item_{index}", label=label))
    return choices


def _parse_redirect(raw: Any) -> Redirect | None:
    if not isinstance(raw, dict) or not raw.get("url"):
        return None
    return Redirect(url=raw["url"], is_new_tab=bool(raw.get("isNewTab", False)))


def parse_response(data: dict) -> DialogueResponse:
    """Convert a startChat/continueChat JSON body into a DialogueResponse."""
    messages = []
    for raw in data.get("messages") or []:
        content = raw.get("content") or {}
        message = OutboundMessage(
            type=raw.get("type", "text"),
            text=extract_text(content),
            url=content.get("url"),
        )
        if message.text or message.url:
            messages.append(message)

    input_spec = None
    raw_input = data.get("input")
    if isinstance(raw_input, dict) and raw_input.get("type"):
        input_spec = InputSpec(
            kind=raw_input["type"],
            id=raw_input.get("id"),
            choices=extract_choices(raw_input),
        )

    actions = []
    for raw in data.get("clientSideActions") or []:
        # Redirect actions come either nested or flat
        redirect = _parse_redirect(raw.get("redirect")) or _parse_redirect(raw)
        payload = {k: v for k, v in raw.items() if k not in ("type", "redirect")}
        actions.append(
            ClientAction(type=raw.get("type", ""), redirect=redirect, payload=payload)
        )

    return DialogueResponse(
        session_id=data.get("sessionId", ""),
        messages=messages,
        input=input_spec,
        redirect=_parse_redirect(data.get("redirect")),
        actions=actions,
    )


class HttpDialogueClient:
    """Typebot-compatible HTTP client with bounded timeout and retries."""

    def __init__(
        self,
        api_base: str,
        api_key: str = "",
        default_flow_id: str = "default",
        timeout: float = 15.0,
        max_attempts: int = 3,
        delay: float = 1.0,
        backoff: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_base = api_base.rstrip("/")
        self._default_flow_id = default_flow_id
        self._max_attempts = max_attempts
        self._delay = delay
        self._backoff = backoff

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(headers=headers, timeout=timeout)
        if client is not None:
            self._client.headers.update(headers)

    async def start(
        self, flow_id: str | None = None, message: str | None = None
    ) -> DialogueResponse:
        flow_id = flow_id or self._default_flow_id
        body = {"message": message} if message else {}
        data = await self._post(f"/typebots/{flow_id}/startChat", body)

        response = parse_response(data)
        response.flow_id = flow_id
        logger.info(
            "Started session %s on flow %s (%s messages)",
            response.session_id,
            flow_id,
            len(response.messages),
        )
        return response

    async def continue_chat(self, session_id: str, message: str) -> DialogueResponse:
        data = await self._post(
            f"/sessions/{session_id}/continueChat",
            {"message": message},
            session_scoped=True,
        )

        response = parse_response(data)
        if not response.session_id:
            response.session_id = session_id
        return response

    async def update_flow(self, session_id: str, flow_id: str) -> None:
        await self._post(
            f"/sessions/{session_id}/updateTypebot",
            {"typebotId": flow_id},
            session_scoped=True,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, body: dict, session_scoped: bool = False) -> dict:
        url = f"{self._api_base}{path}"
        delay = self._delay
        last_error = ""

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await self._client.post(url, json=body)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                status = None
            else:
                status = response.status_code
                if response.is_success:
                    if not response.content:
                        return {}
                    try:
                        return response.json()
                    except ValueError as e:
                        raise CollaboratorUnavailable(
                            f"Dialogue API returned invalid JSON for {path}: {e}",
                            status_code=status,
                        ) from e

                text = response.text
                if session_scoped and (
                    status == 404 or "session not found" in text.lower()
                ):
                    raise SessionNotFound(f"Session not found: {path}")
                last_error = f"{status} {response.reason_phrase} - {text[:200]}"
                if status < 500:
                    raise CollaboratorUnavailable(
                        f"Dialogue API error: {last_error}", status_code=status
                    )

            logger.warning(
                "Dialogue API call %s failed (attempt %s/%s): %s",
                path,
                attempt,
                self._max_attempts,
                last_error,
            )
            if attempt < self._max_attempts:
                await asyncio.sleep(delay)
                delay *= self._backoff

        raise CollaboratorUnavailable(
            f"Dialogue API unavailable after {self._max_attempts} attempts: {last_error}",
            status_code=status,
        )
