"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.common.request_id import RequestIDMiddleware
from app.core.config import settings
from app.core.errors import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.core.logging import get_logger, setup_logging
from app.db.base import Base, import_models
from app.db.engine import engine

logger = get_logger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    # Schema is created directly outside prod; prod schemas are managed out of band
    if settings.ENV in ("dev", "test"):
        import_models()
        Base.metadata.create_all(bind=engine)
    logger.info("Quiz session service started", extra={"env": settings.ENV})
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    # Interactive docs are disabled in prod
    docs_enabled = settings.ENV != "prod"
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=API_VERSION,
        description="Quiz session service: timed quiz attempts with pause, resume, and recovery",
        openapi_url="/openapi.json" if docs_enabled else None,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # First added is innermost
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    return app


app = create_app()
