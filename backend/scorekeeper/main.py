from contextlib import asynccontextmanager
import logging
import os

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routers import matches
from .exceptions import DomainException, ProblemDetail
from .config import API_PREFIX, ALLOW_CREDENTIALS, AUTO_CREATE_SCHEMA, parse_allowed_origins
from .db import get_engine, init_models
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

init_sentry()

# Fail fast if misconfigured
ALLOWED_ORIGINS = parse_allowed_origins(os.getenv("ALLOWED_ORIGINS"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_SCHEMA:
        logger.info("AUTO_CREATE_SCHEMA enabled; creating missing tables")
        await init_models()
    yield
    await get_engine().dispose()


# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------
app = FastAPI(
    title="Tennis Scorekeeper API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("API_PREFIX=%r", API_PREFIX)


# -----------------------------------------------------------------------------
# Health checks
# -----------------------------------------------------------------------------
@app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
def root_healthz():
    return {"status": "ok"}


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    return _problem_response(
        ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
            instance=request.url.path,
        )
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    return _problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            code=code,
            instance=request.url.path,
        )
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = "; ".join(str(err.get("msg", "")) for err in exc.errors())
    return _problem_response(
        ProblemDetail(
            title="Invalid request",
            detail=messages or None,
            status=422,
            code="request_invalid",
            instance=request.url.path,
        )
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _problem_response(
        ProblemDetail(
            title="Internal Server Error",
            status=500,
            detail=str(exc),
            code="internal_server_error",
        )
    )


def install_exception_handlers(target: FastAPI) -> None:
    target.add_exception_handler(DomainException, domain_exception_handler)
    target.add_exception_handler(HTTPException, http_exception_handler)
    target.add_exception_handler(RequestValidationError, validation_exception_handler)
    target.add_exception_handler(Exception, unhandled_exception_handler)


install_exception_handlers(app)

# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------
api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok"}


@api_router.get("")
def api_root():
    return {"message": "Tennis Scorekeeper API. See /docs."}


v0_router = APIRouter(prefix="/v0")
v0_router.include_router(matches.router)

api_router.include_router(v0_router)
app.include_router(api_router)
