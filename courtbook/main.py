import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .database import dispose_engine, get_sessionmaker
from .deps import build_janitor
from .routers import admin, courts, reservations
from .utils.request_id import REQUEST_ID_HEADER, normalize_request_id, set_request_id

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("courtbook")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Build the engine and session factory once per process.
    get_sessionmaker()
    if not settings.auth_secret:
        logger.warning("AUTH_SECRET is not set; all bearer credentials will be rejected")
    janitor = build_janitor() if settings.janitor_enabled else None
    if janitor is not None:
        janitor.start()
        logger.info("reservation janitor started (every %s)", janitor.interval)
    try:
        yield
    finally:
        if janitor is not None:
            await janitor.stop()
        await dispose_engine()


async def request_id_middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    request_id = normalize_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


app = FastAPI(title="Court Reservation API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(courts.router)
app.include_router(reservations.router)
app.include_router(admin.router)
