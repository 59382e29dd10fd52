"""
FlatShare FastAPI application entry point.

Request flow: identity (JWT) → membership check → registry / join-request ledger / event board
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app import __version__
from app.api import auth_router, events_router, join_requests_router, shared_flats_router
from app.config import get_settings
from app.db.session import check_db_connection, engine
from app.services.membership_authorizer import DeletePolicy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

FLAT_PREFIX = "/api/shared-flat"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Verify the database on startup; release the pool on shutdown."""
    settings = get_settings()
    logger.info("FlatShare %s starting", __version__)
    try:
        try:
            check_db_connection()
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise
        logger.info("Database connection verified")

        if not settings.secret_key:
            logger.warning("SECRET_KEY is empty; access tokens are signed with an empty key")
        logger.info(
            "Flat deletion policy: %s",
            DeletePolicy.from_setting(settings.flat_delete_policy).value,
        )

        yield
    finally:
        engine.dispose()
        logger.info("FlatShare stopped; database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(shared_flats_router, prefix=FLAT_PREFIX, tags=["shared-flat"])
    app.include_router(join_requests_router, prefix=FLAT_PREFIX, tags=["join-request"])
    app.include_router(events_router, prefix=FLAT_PREFIX, tags=["event"])

    @app.get("/health")
    def health() -> JSONResponse:
        """Liveness plus database reachability; 503 when the database is down."""
        try:
            check_db_connection()
        except Exception as e:
            logger.warning("Health check: database unreachable: %s", e)
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "version": __version__, "database": "disconnected"},
            )
        return JSONResponse(
            content={"status": "ok", "version": __version__, "database": "connected"}
        )

    return app


app = create_app()
