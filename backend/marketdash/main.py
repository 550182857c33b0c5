from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketdash.api.routes.admin_order_routes import router as admin_order_router
from marketdash.api.routes.notification_routes import router as notification_router
from marketdash.container import container, mongo_manager, order_poller, redis_manager, settings
from marketdash.core.errors import FetchFailure, PersistenceFailure
from marketdash.infrastructure.logging import get_logger, setup_logging

setup_logging(settings.log_level)
logger = get_logger(__name__)

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "AUTH_REQUIRED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
}


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    await container.start()
    try:
        yield
    finally:
        await container.stop()


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(admin_order_router, prefix=settings.api_prefix)
app.include_router(notification_router, prefix=settings.api_prefix)


def _error(status_code: int, code: str, message: str, details: list[object] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or []}},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return _error(exc.status_code, code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    return _error(400, "VALIDATION_ERROR", "Request validation failed", details)


@app.exception_handler(PersistenceFailure)
async def persistence_failure_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    logger.error("persistence_failure", path=request.url.path, error=str(exc))
    return _error(502, exc.code, str(exc))


@app.exception_handler(FetchFailure)
async def fetch_failure_handler(request: Request, exc: FetchFailure) -> JSONResponse:
    logger.warning("fetch_failure", path=request.url.path, error=str(exc))
    return _error(503, exc.code, str(exc))


@app.get("/health")
def health() -> dict[str, object]:
    return {
        "status": "ok",
        "services": {
            "mongo": {"status": mongo_manager.status, "error": mongo_manager.error},
            "redis": {"status": redis_manager.status, "error": redis_manager.error},
        },
        "poller": order_poller.status(),
    }
