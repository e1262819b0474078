from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockwatch.api.dependencies import close_http_session, create_http_session
from stockwatch.api.routes import router as api_router
from stockwatch.core.config import get_settings
from stockwatch.core.connection import LazyConnection
from stockwatch.core.errors import (
    ConfigurationError,
    NotAuthenticatedError,
    RequestTimeoutError,
    StockwatchError,
    UpstreamError,
)
from stockwatch.core.logger import configure_logging, logger
from stockwatch.services.watchlist_store import connect_memory_store

app = FastAPI(title="Stockwatch")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

app.state.http_session = LazyConnection(create_http_session, close_http_session, name="HTTP session")
app.state.watchlist_store = LazyConnection(connect_memory_store, name="watchlist store")


def _status_for(exc: StockwatchError) -> int:
    if isinstance(exc, NotAuthenticatedError):
        return 401
    if isinstance(exc, ConfigurationError):
        return 503
    if isinstance(exc, RequestTimeoutError):
        return 504
    if isinstance(exc, UpstreamError):
        return 502
    return 500


@app.exception_handler(StockwatchError)
async def _stockwatch_error_handler(request: Request, exc: StockwatchError) -> JSONResponse:
    status = _status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {status}: {exc!r}")
    return JSONResponse(status_code=status, content={"detail": exc.message})


@app.on_event("startup")
def _validate_env_on_startup() -> None:
    # Fail fast on malformed settings; a missing token is only logged.
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.finnhub_api_key:
        logger.error("FINNHUB_API_KEY is not configured; stock details and news will fail")


@app.on_event("shutdown")
async def _close_connections() -> None:
    await app.state.http_session.close()
    await app.state.watchlist_store.close()


@app.get("/health")
async def health_check() -> dict:
    return {"status": "ok"}
