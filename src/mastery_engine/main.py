"""FastAPI application entry point."""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mastery_engine.api.routes import router
from mastery_engine.config import get_settings


def configure_logging(env: str | None = None) -> None:
    """Set up structlog: JSON lines in production, console output otherwise."""
    env = (env or os.getenv("ENV", "development")).lower()
    if env == "production":
        renderer = structlog.processors.JSONRenderer()
        level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        level = logging.DEBUG

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

settings = get_settings()

app = FastAPI(title="Mastery Engine", version="0.1.0")
_allowed_origins_env = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000"
)
allowed_origins = [o.strip() for o in _allowed_origins_env.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


def main() -> None:
    """Run the application."""
    uvicorn.run(
        "mastery_engine.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
