"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from modal_sessions.api.admin import router as admin_router
from modal_sessions.api.discord_models import DiscordInteraction
from modal_sessions.app_logging import configure_logging
from modal_sessions.containers import AppContainer
from modal_sessions.domain.interactions import CallbackType, InteractionType


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/discord/interactions")
    async def discord_interactions(request: Request) -> JSONResponse:
        """Handle Discord interaction webhooks."""
        state_container: AppContainer = request.app.state.container
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST) from None
        try:
            interaction = DiscordInteraction.model_validate(payload)
        except ValidationError:
            logger.warning("Rejected malformed Discord interaction")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST) from None

        if interaction.type == InteractionType.PING:
            return JSONResponse({"type": int(CallbackType.PONG)})

        try:
            handled = await state_container.session_router.route(payload)
        except Exception:
            logger.exception(
                "Failed to route Discord interaction",
                extra={"interaction_id": interaction.id},
            )
            raise
        return JSONResponse(
            {"status": "handled" if handled else "ignored"},
            status_code=status.HTTP_202_ACCEPTED,
        )

    return app
