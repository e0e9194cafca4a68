"""
Main application module for the meeting signaling service.

This module sets up the FastAPI application with lifespan management
(Meeting Store connection, idle room reaper), error handlers, routing and
Prometheus instrumentation.
"""

import asyncio
from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from meeting_signaling import __version__
from meeting_signaling.config import settings
from meeting_signaling.database import db_manager
from meeting_signaling.managers.logging_manager import get_logger
from meeting_signaling.utils.logging_utils import (
    RequestLoggingMiddleware,
    log_application_lifecycle,
    log_error_with_context,
)
from meeting_signaling.webrtc import router as webrtc_router
from meeting_signaling.webrtc import webrtc_manager
from meeting_signaling.webrtc.errors import WebRtcError, WebRtcErrorCode

logger = get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Connects to the Meeting Store, ensures indexes and starts the idle room
    reaper when WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS is positive. Shutdown cancels
    background tasks and disconnects.
    """
    startup_start_time = time.time()
    log_application_lifecycle(
        "startup_initiated",
        {
            "app_name": settings.APP_NAME,
            "version": __version__,
            "environment": "production" if settings.is_production else "development",
            "debug_mode": settings.DEBUG,
        },
    )

    try:
        db_connect_start = time.time()
        logger.info("Initiating database connection...")
        await db_manager.connect()
        log_application_lifecycle(
            "database_connected",
            {
                "connection_duration": f"{time.time() - db_connect_start:.3f}s",
                "database_name": settings.MONGODB_DATABASE,
                "connection_url": (
                    settings.MONGODB_URL.split("@")[-1] if "@" in settings.MONGODB_URL else settings.MONGODB_URL
                ),
            },
        )

        logger.info("Creating/verifying database indexes...")
        await db_manager.create_indexes()
    except Exception as e:
        log_application_lifecycle(
            "startup_failed",
            {
                "error": str(e),
                "error_type": type(e).__name__,
                "startup_duration": f"{time.time() - startup_start_time:.3f}s",
            },
        )
        log_error_with_context(e, {"operation": "application_startup", "phase": "database_connection"})
        raise

    background_tasks: dict[str, asyncio.Task] = {}
    if settings.WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS > 0:
        background_tasks["idle_room_reaper"] = asyncio.create_task(webrtc_manager.run_idle_reaper())
    else:
        logger.info("Idle room reaper disabled (WEBRTC_ROOM_IDLE_TIMEOUT_SECONDS=0)")

    log_application_lifecycle(
        "startup_completed",
        {
            "startup_duration": f"{time.time() - startup_start_time:.3f}s",
            "background_tasks": list(background_tasks),
        },
    )

    yield

    shutdown_start_time = time.time()
    log_application_lifecycle("shutdown_initiated", {"active_background_tasks": len(background_tasks)})

    for task_name, task in background_tasks.items():
        task.cancel()
        logger.info(f"Cancelled background task: {task_name}")

    for task_name, task in background_tasks.items():
        try:
            await asyncio.wait_for(task, timeout=5.0)
        except asyncio.CancelledError:
            logger.info(f"Background task {task_name} cancelled successfully")
        except asyncio.TimeoutError:
            logger.warning(f"Background task {task_name} cancellation timed out")

    try:
        logger.info("Disconnecting from database...")
        await db_manager.disconnect()
    except Exception as e:
        log_error_with_context(e, {"operation": "database_disconnection"})

    log_application_lifecycle(
        "shutdown_completed", {"total_shutdown_duration": f"{time.time() - shutdown_start_time:.3f}s"}
    )


app = FastAPI(
    title="Meeting Signaling API",
    description="""
    ## Meeting Signaling API

    Room lifecycle and WebRTC signaling relay for teacher/parent/student video meetings.

    ### Features
    - **Rooms**: create, join, leave and end rooms tied to scheduled meetings
    - **Signaling**: relay offers, answers and ICE candidates between participants
    - **Polling delivery**: each participant drains its own mailbox
    """,
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Video Meetings", "description": "Rooms and signaling relay"},
        {"name": "System", "description": "System health and monitoring endpoints"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(WebRtcError)
async def webrtc_error_handler(_request: Request, exc: WebRtcError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code.value}: {exc.message}", extra={"details": exc.details})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    error = WebRtcError(
        error_code=WebRtcErrorCode.VALIDATION_ERROR,
        message="Malformed request",
        details={"errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()]},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/health", tags=["System"])
async def health_check():
    """Liveness plus a Meeting Store ping."""
    database_ok = await db_manager.health_check()
    return {
        "status": "ok" if database_ok else "degraded",
        "service": settings.APP_NAME,
        "version": __version__,
        "database": "connected" if database_ok else "unavailable",
        "active_rooms": len(webrtc_manager.list_active_rooms()),
    }


app.include_router(webrtc_router)
logger.info(f"Included video meetings router under {settings.API_PREFIX}")

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=False,
    should_instrument_requests_inprogress=True,
)
instrumentator.add().instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")


if __name__ == "__main__":
    uvicorn.run(
        "meeting_signaling.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info"
    )
