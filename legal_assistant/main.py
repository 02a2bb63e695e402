"""
Main FastAPI application for the Legal Assistant backend.
Handles CORS, request logging middleware, lifespan events, error mapping and
router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from legal_assistant.config import settings
from legal_assistant.exceptions import (
    CompletionError,
    ExtractionError,
    InvalidTransitionError,
    SessionNotFoundError,
    UnsupportedFormatError,
    UserInputError,
)
from legal_assistant.models.schemas import ErrorResponse
from legal_assistant.routers import chat, documents, health, workflow
from legal_assistant.services.llm_client import OllamaClient
from legal_assistant.utils.helpers import utc_now

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup helpers
# ---------------------------------------------------------------------------

async def _check_llm() -> bool:
    """
    Probe the completion provider.  Never raises: without a provider every
    request is served by the rule-based fallbacks.
    """
    client = OllamaClient()
    if not client.configured:
        logger.warning("No completion provider configured; using rule-based fallbacks only")
        return False

    reachable = await client.check_health()
    if reachable:
        logger.info("Completion provider reachable at %s (model %s)", client.base_url, client.model)
    else:
        logger.warning(
            "Completion provider at %s is unreachable; requests will use fallbacks "
            "until it is up",
            client.base_url,
        )
    return reachable


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Legal Assistant backend ...")
    logger.info("=" * 60)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info("Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))

    await _check_llm()

    logger.info("  Legal Assistant backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield

    logger.info("Shutting down Legal Assistant backend ...")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Legal Assistant API",
    description=(
        "Document-intake assistant: upload a legal document, get an analysis, "
        "answer the generated questions and download the completed document.\n\n"
        "Key endpoints:\n"
        "- `POST /api/documents/upload` - analyse a document\n"
        "- `POST /api/documents/generate-questions` - form questions for an analysis\n"
        "- `POST /api/documents/generate-document` - completed document from answers\n"
        "- `POST /api/chat/message` - legal Q&A chat\n"
        "- `POST /api/workflow/sessions` - server-driven conversation\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    if request.url.path not in ("/api/health/", "/"):
        logger.info(
            "%s %s -> %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

def _error(status_code: int, error: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(UserInputError)
@app.exception_handler(UnsupportedFormatError)
@app.exception_handler(ExtractionError)
async def bad_request_handler(request: Request, exc: Exception):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


def _validation_details(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request", _validation_details(exc))


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return _error(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(CompletionError)
async def completion_error_handler(request: Request, exc: CompletionError):
    logger.error("Completion failed on %s %s: %s", request.method, request.url.path, exc)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "The language model returned an unexpected error",
        str(exc),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc),
            "path": str(request.url.path),
            "timestamp": utc_now().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,    prefix="/api/health",    tags=["Health"])
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
app.include_router(chat.router,      prefix="/api/chat",      tags=["Chat"])
app.include_router(workflow.router,  prefix="/api/workflow",  tags=["Workflow"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root - returns basic service info."""
    return {
        "name": "Legal Assistant API",
        "version": "1.0.0",
        "description": "Legal document analysis and completion backend",
        "docs": "/docs",
        "health": "/api/health/",
        "endpoints": {
            "documents": "/api/documents",
            "chat": "/api/chat",
            "workflow": "/api/workflow/sessions",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "legal_assistant.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
