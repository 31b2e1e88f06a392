"""Control API routes."""

import re

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException

from ...app import Application


class StatusResponse(BaseModel):
    """Response model for status."""

    status: str


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(prefix="/api/control", tags=["control"])

    @router.post("/reset", response_model=StatusResponse)
    async def reset_system() -> dict:
        """Reset system data between test runs."""
        try:
            await app.reset()
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/users/{wa_id}/reset", response_model=StatusResponse)
    async def reset_user(wa_id: str) -> dict:
        """Drop a user's choices, expected input and session.

        The next message from the user starts the default flow from scratch.
        """
        if not re.match(app.settings.wa_id_pattern, wa_id):
            raise HTTPException(status_code=400, detail="Invalid user id format")

        async def _reset() -> None:
            await app.state.reset_user(wa_id)
            await app.state.set_active_flow_id(
                wa_id, app.settings.default_flow_id, None
            )

        try:
            await app.lock.run(wa_id, _reset)
            return {"status": "ok"}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
