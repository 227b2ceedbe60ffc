# backend/dealmatch/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .config import settings
from .db import Base, engine
from .errors import MatchingError
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.matching import router as matching_router
from .routers.meta import router as meta_router
from .routers.metrics import router as metrics_router
from .schemas import ErrorOut
from .services.comparable_stats import ComparableStatsCache

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorOut(error=message).model_dump())


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MatchingError)
    async def _matching_error(request: Request, exc: MatchingError):
        if exc.status_code >= 500:
            log.exception("matching failure", exc_info=exc)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        errs = exc.errors()
        first = errs[0] if errs else {}
        loc = ".".join(str(x) for x in first.get("loc", ()) if x != "body")
        msg = first.get("msg") or "Invalid request"
        return _error(400, f"{loc}: {msg}" if loc else msg)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled error", exc_info=exc)
        return _error(500, "Internal server error")


def create_app() -> FastAPI:
    configure_logging()

    if (settings.app_env or "local").strip().lower() == "local":
        # Alembic owns the schema everywhere else.
        Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Deal Match Engine", version=settings.engine_version)

    # Added last runs first: request id must be set before the access log line.
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.comparable_stats_cache = ComparableStatsCache()
    _install_error_handlers(app)

    app.include_router(meta_router, prefix=API_PREFIX)
    app.include_router(metrics_router, prefix=API_PREFIX)
    app.include_router(matching_router, prefix=API_PREFIX)
    return app


app = create_app()
