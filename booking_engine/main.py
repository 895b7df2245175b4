import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_engine.api.routes import bookings, providers, slots
from booking_engine.core.clock import SystemClock
from booking_engine.core.config import _ENV_FILE, settings
from booking_engine.core.db import async_session_maker
from booking_engine.core.errors import SchedulingError
from booking_engine.services.reminder_service import LoggingReminderDispatcher, ReminderDispatcher, run_reminder_tick

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _run_reminder_tick(dispatcher: ReminderDispatcher) -> None:
    """One reminder pass in its own session; failures are logged and the loop keeps going."""
    try:
        async with async_session_maker() as session:
            try:
                sent = await run_reminder_tick(session, SystemClock(), dispatcher)
                if sent:
                    logger.info("Reminder tick: %d reminder(s) dispatched", len(sent))
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Reminder tick failed: %s", e)


async def _reminder_loop(dispatcher: ReminderDispatcher) -> None:
    while True:
        await asyncio.sleep(settings.reminder_tick_seconds)
        await _run_reminder_tick(dispatcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    if not settings.reminders_enabled:
        logger.warning("Reminder scheduler disabled (REMINDERS_ENABLED=false)")
        yield
        return
    dispatcher = getattr(app.state, "reminder_dispatcher", None) or LoggingReminderDispatcher()
    logger.info("Reminder scheduler: tick every %d seconds", settings.reminder_tick_seconds)
    # Startup: run one tick, then keep ticking in the background
    await _run_reminder_tick(dispatcher)
    task = asyncio.create_task(_reminder_loop(dispatcher))
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    title="Booking Engine API",
    description="Provider availability, slot generation, bookings and reminder scheduling",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(providers.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
