"""FastAPI application entry point.

This module wires together the API routers, configures logging,
middleware, error handlers and startup/shutdown tasks, and exposes the
ASGI application object used by the server.
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from openai import OpenAIError
from lms.routes import (
    auth,
    users,
    admin,
    settings,
    courses,
    lessons,
    quizzes,
    ai,
)
from lms.database import create_db_and_tables, async_session
from lms.crud import ensure_permissions_exist, get_settings
from lms.acl import ALL_PERMISSIONS
from lms.errors import (
    QuizError,
    InvalidQuizDefinition,
    MalformedAnswerSet,
    PersistenceError,
    SessionStateError,
)
from lms.sessions import get_session_registry

# Basic logging configuration.  The log level can be controlled with an
# environment variable so deployments can adjust verbosity without code
# changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

app = FastAPI(title="Learning Hub API", docs_url=None)


def custom_openapi():
    """Generate an OpenAPI schema that is aware of our `/api` proxy prefix."""

    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    # The reverse proxy serves the API under `/api`; tell Swagger about it.
    openapi_schema["servers"] = [{"url": "/api"}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Initialize the database and seed the permission table."""

    await create_db_and_tables()
    async with async_session() as session:
        # Ensure any new permissions are inserted into the database on startup.
        await ensure_permissions_exist(session, ALL_PERMISSIONS)


@app.on_event("shutdown")
async def on_shutdown():
    """Cancel countdowns of quiz sessions still in memory."""

    await get_session_registry().close()


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(settings.router)
app.include_router(courses.router)
app.include_router(lessons.router)
app.include_router(quizzes.router)
app.include_router(ai.router)


@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    """Serve the interactive docs with the correct API prefix."""

    # The API is served behind a `/api` prefix by the reverse proxy, so point
    # Swagger UI at `/api/openapi.json` instead of the default location.
    return get_swagger_ui_html(openapi_url="/api/openapi.json", title="API Docs")


@app.get("/")
async def read_root():
    async with async_session() as session:
        s = await get_settings(session)
        name = s.site_name
    return {"message": f"Welcome to {name} API"}


QUIZ_ERROR_STATUS = {
    InvalidQuizDefinition: 422,
    MalformedAnswerSet: 400,
    SessionStateError: 409,
    PersistenceError: 503,
}


@app.exception_handler(QuizError)
async def quiz_exception_handler(request: Request, exc: QuizError):
    """Translate grading and recording failures into API errors."""
    status_code = QUIZ_ERROR_STATUS.get(type(exc), 400)
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure during %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


@app.exception_handler(OpenAIError)
async def ai_exception_handler(request: Request, exc: OpenAIError):
    logger.error("AI provider request failed for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={
            "detail": {
                "code": "ai_unavailable",
                "message": "The AI assistant is unavailable, try again later",
            }
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
