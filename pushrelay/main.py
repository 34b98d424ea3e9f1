"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pushrelay.api import account, push, pushover, subscribers, topics
from pushrelay.config import get_settings
from pushrelay.exceptions import PushRelayError

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(f"Starting pushrelay ({settings.environment})")
    yield


app = FastAPI(
    title="pushrelay",
    description="Topic-based push notifications over webhooks, email and mobile push",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(PushRelayError)
async def push_relay_error_handler(request: Request, exc: PushRelayError) -> JSONResponse:
    """Render domain errors as ``{"error": ..., **details}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, **exc.details},
        headers=exc.headers,
    )


# Register routers
app.include_router(push.router)
app.include_router(pushover.router)
app.include_router(topics.router)
app.include_router(subscribers.router)
app.include_router(account.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
