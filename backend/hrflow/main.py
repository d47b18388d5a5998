"""
HR onboarding API.

Run with: uvicorn hrflow.main:app --reload  (from the backend directory)
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from . import __version__, events
from .database import init_db
from .logging_config import configure_logging
from .middleware import LoggingMiddleware, setup_exception_handlers
from .orchestrator import LifecycleOrchestrator
from .routers import (
    accounts,
    contracts,
    document_requests,
    documents,
    employment_forms,
    hiring,
    offers,
    templates,
)

configure_logging()
logger = structlog.get_logger()


def build_bus(bus: events.EventBus = events.bus) -> events.EventBus:
    """Wire the stage orchestrator onto ``bus`` exactly once."""
    bus.clear()
    LifecycleOrchestrator().register(bus)
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting HR onboarding API", version=__version__)
    init_db()
    build_bus()
    yield
    logger.info("Shutting down HR onboarding API")


def create_app() -> FastAPI:
    app = FastAPI(title="HR Onboarding API", version=__version__, lifespan=lifespan)
    setup_exception_handlers(app)
    app.add_middleware(LoggingMiddleware)

    for module in (offers, employment_forms, contracts, accounts, documents, templates, document_requests, hiring):
        app.include_router(module.router, prefix="/api")

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
