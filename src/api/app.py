"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from src.config.settings import Settings, get_settings
from src.db.state_store import build_session_store
from src.engine.dispatcher import PhaseDispatcher
from src.engine.turns import TurnProcessor
from src.phases.common import PhaseContext
from src.services.delegate_client import DelegationGateway
from src.shared.intents import KeywordIntentClassifier
from src.shared.prompts import PromptRenderer

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import APIRouter


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    Disposes the database engine on shutdown when one was created.

    Args:
        app: FastAPI application instance.

    Yields:
        Control to the running application.
    """
    yield
    from src.db.session import dispose_engine

    await dispose_engine()


def build_turn_processor(settings: Settings) -> TurnProcessor:
    """Wire the turn processor from settings.

    Args:
        settings: Application settings.

    Returns:
        TurnProcessor with the configured store and gateway.
    """
    context = PhaseContext(
        classifier=KeywordIntentClassifier(),
        prompts=PromptRenderer(settings.bot_language),
        language=settings.speech_language,
        greeting_audio=settings.greeting_audio,
    )
    return TurnProcessor(
        store=build_session_store(settings),
        gateway=DelegationGateway.from_settings(settings),
        dispatcher=PhaseDispatcher(context),
    )


def create_app(processor: TurnProcessor | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        processor: Turn processor to serve; built from settings if None.

    Returns:
        Configured FastAPI instance.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title="Quintero Voice Bot",
        description="Turn engine for the appointment phone bot",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.turn_processor = processor or build_turn_processor(settings)

    app.include_router(_health_router())

    from src.api.turns import router as turns_router

    app.include_router(turns_router)

    return app


def _health_router() -> APIRouter:
    """Create health check router.

    Returns:
        Router with health endpoints.
    """
    from fastapi import APIRouter

    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health() -> dict[str, str]:
        """Return application health status.

        Returns:
            Dict with status key.
        """
        return {"status": "ok"}

    return router


app = create_app()
