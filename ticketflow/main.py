"""
Ticketflow - Main Application
=============================

Automated triage for incoming support tickets.

Modules:
- Automation: drafts, agent debate, escalation, approval gate, resolution

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, stages and DTOs
- Domain: Entities, heuristics and value objects
- Infrastructure: Database, LLM text extraction
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Configuration and Core
from ticketflow.config import settings
from ticketflow.core import ApplicationException

# Infrastructure
from ticketflow.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)

# Automation Module
from ticketflow.automation.application import AutomationController, DraftBuilder
from ticketflow.automation.infrastructure import build_text_extractor
from ticketflow.automation.interfaces import agents_router, tickets_router

# Shared
from ticketflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from ticketflow.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Build the text extractor and automation controller

    SHUTDOWN:
    1. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Ticketflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # If the database is unavailable the server still starts and
    # database-dependent endpoints fail
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    extractor = build_text_extractor(settings)
    draft_builder = DraftBuilder(extractor, timeout_seconds=settings.llm_timeout_seconds)

    app.state.settings = settings
    app.state.controller = AutomationController(draft_builder)

    logger.info("Ticketflow started", extra={
        "text_extraction": draft_builder.extraction_enabled
    })

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Ticketflow")
    await close_database()
    logger.info("Ticketflow shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    application = FastAPI(
        title="Ticketflow API",
        description="""
        ## Ticket Automation

        Raw report -> structured draft -> agent debate (duplicates, severity,
        routing) -> escalation policy -> approval gate -> resolution.

        **Endpoints:**
        - `POST /tickets` - Create a ticket from raw text and automate it
        - `POST /tickets/automate-open` - Automate every open ticket once
        - `POST /tickets/{id}/approve` - Approve a halted ticket and resolve it
        - `GET /tickets/{id}` - Ticket with draft, updates, negotiations, links
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # LoggingMiddleware is added first so it runs inside CorrelationIDMiddleware
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    application.add_exception_handler(ApplicationException, application_exception_handler)
    application.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    application.include_router(tickets_router)
    application.include_router(agents_router)

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports database connectivity and whether text extraction is on.
        """
        checks = {"database": "connected"}
        try:
            async with get_session_context() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            checks["database"] = f"error: {str(e)}"

        controller = getattr(request.app.state, "controller", None)
        checks["text_extraction"] = (
            "enabled" if controller and controller.draft_builder.extraction_enabled else "disabled"
        )

        return {
            "status": "healthy" if checks["database"] == "connected" else "degraded",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @application.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
        }

    return application


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticketflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
