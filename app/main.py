from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request

from app.config import validate_env
from app.logging_utils import configure_logging
from app.schemas.health import HealthResponse
from app.scraping.cache import describe_cache


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """
    Validate DB connectivity and schema, build services and start the
    scheduler on boot; stop the scheduler and drain import workers on exit.
    """
    log = logging.getLogger(__name__)
    _check_db()
    log.info("Database connectivity confirmed")
    _check_schema()
    log.info("Database schema validated")

    from app.container import build_container
    from app.scheduler.jobs import build_scheduler
    from db.session import get_session_factory

    container = build_container(session_factory=get_session_factory())
    application.state.container = container

    scheduler = build_scheduler(container)
    scheduler.start()
    application.state.scheduler = scheduler
    log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        log.info("Scheduler shut down")
        container.shutdown()
        log.info("Import workers drained")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    validate_env()
    configure_logging()

    application = FastAPI(
        title="Material Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import listing_scrape_router, material_import_router

    application.include_router(material_import_router)
    application.include_router(listing_scrape_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck(request: Request) -> HealthResponse:
        container = getattr(request.app.state, "container", None)
        scheduler = getattr(request.app.state, "scheduler", None)
        if container is None:
            return HealthResponse(status="starting")
        return HealthResponse(
            status="ok",
            scheduler_running=bool(scheduler is not None and scheduler.running),
            scrape_enabled=container.scrape_service is not None,
            pending_scrapes=container.deduplicator.pending_count(),
            scrape_cache=describe_cache(container.scrape_cache),
        )

    return application


app = create_app()
