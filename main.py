"""
Academy API entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the academy routes; all state lives in PostgreSQL
- The lifespan closes the database pool on shutdown

Run with: python main.py [--port PORT] [--dev]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env first, then .env.local overrides (gitignored, local dev)
load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local", override=True)

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from academy.config import (
    check_required_env_vars,
    get_allowed_origins,
    get_api_port,
    get_sentry_dsn,
    get_sentry_environment,
)
from academy.database import close_engine
from academy.errors import AcademyError, CourseStructureError, QuizNotConfiguredError

# Import routes using full paths (don't add web_api to sys.path to avoid main.py conflict)
from web_api.routes.catalog import router as catalog_router
from web_api.routes.course_content import router as course_content_router
from web_api.routes.quizzes import router as quizzes_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

if get_sentry_dsn():
    sentry_sdk.init(
        dsn=get_sentry_dsn(),
        environment=get_sentry_environment(),
        traces_sample_rate=0.0,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Checks configuration on startup and closes database connections on
    shutdown.
    """
    ok, messages = check_required_env_vars()
    for message in messages:
        logger.warning(message)
    if not ok:
        logger.error("Missing required environment variables")

    yield

    print("Shutting down...")
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Academy Access API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AcademyError)
async def academy_error_handler(request: Request, exc: AcademyError):
    """Render domain errors as {success: false, code, message}."""
    if isinstance(exc, (CourseStructureError, QuizNotConfiguredError)):
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        sentry_sdk.capture_exception(exc)
    else:
        logger.debug(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request.")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "message": f"{field}: {message}" if field else message,
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "code": "SERVER_ERROR",
            "message": "Internal server error.",
        },
    )


# Include routers
app.include_router(catalog_router)
app.include_router(course_content_router)
app.include_router(quizzes_router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Academy Access API Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Enable development mode (extra CORS origins, lenient env checks)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.dev:
        os.environ["DEV_MODE"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
