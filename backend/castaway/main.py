"""
Castaway Backend - FastAPI Application Entry Point
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from castaway import __version__
from castaway.api import gateway, rooms
from castaway.config import Settings, get_settings
from castaway.engine.pipeline import NarrationPipeline, ResolutionPipeline
from castaway.engine.protocols import NarrationGenerator, OutcomeGenerator
from castaway.engine.registry import RoomRegistry
from castaway.engine.retry import linear_backoff

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    outcome_generator: OutcomeGenerator | None = None,
    narration_generator: NarrationGenerator | None = None,
) -> FastAPI:
    """
    Build the application with a fresh, empty room registry.

    Args:
        settings: Runtime settings (read from the environment if None)
        outcome_generator: Day resolver (LLM-backed if None)
        narration_generator: Day narrator (LLM-backed if None)
    """
    settings = settings or get_settings()

    if outcome_generator is None or narration_generator is None:
        from castaway.llm.narrator import DayNarratorAI
        from castaway.llm.resolver import ActionResolverAI

        outcome_generator = outcome_generator or ActionResolverAI(log_dir=settings.log_dir)
        narration_generator = narration_generator or DayNarratorAI(log_dir=settings.log_dir)

    retry_settings = dict(
        max_attempts=settings.max_attempts,
        backoff=linear_backoff(settings.backoff_seconds),
        timeout=settings.generation_timeout,
    )

    registry = RoomRegistry()
    connections = gateway.ConnectionManager()
    resolution_pipeline = ResolutionPipeline(registry, outcome_generator, **retry_settings)
    narration_pipeline = NarrationPipeline(registry, narration_generator, **retry_settings)

    app = FastAPI(
        title="Castaway",
        description="Multiplayer island survival party game server",
        version=__version__,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.connections = connections
    app.state.resolution_pipeline = resolution_pipeline
    app.state.narration_pipeline = narration_pipeline
    app.state.gateway = gateway.SessionGateway(
        registry, connections, resolution_pipeline, narration_pipeline
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rooms.router, prefix="/api/rooms", tags=["rooms"])
    app.include_router(gateway.router, tags=["realtime"])

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "status": "ok",
            "name": "Castaway",
            "version": __version__,
            "rooms": len(registry),
        }

    return app


app = create_app()
