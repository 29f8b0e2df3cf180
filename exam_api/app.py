"""Main FastAPI application with modularized routes."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from exam_api.config import LOG_LEVEL
from exam_api.database import init_db
from exam_api.errors import ExamError, Unauthorized
from exam_api.logging_setup import setup_console_logging
from exam_api.routes import attempts, auth, groups, tests

setup_console_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Exam Attempts API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database on startup."""
    init_db()


@app.exception_handler(ExamError)
async def exam_error_handler(request: Request, exc: ExamError) -> JSONResponse:
    """Render domain errors as {"detail": <code>} with their status."""
    logger.debug("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code}, headers=headers)


@app.get("/health")
def health() -> dict[str, bool]:
    """Liveness check."""
    return {"ok": True}


# Include routers
app.include_router(auth.router)
app.include_router(tests.router)
app.include_router(attempts.router)
app.include_router(groups.router)
app.include_router(groups.invites_router)
