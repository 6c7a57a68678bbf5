import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from render_proxy.api.deps import admission_gate
from render_proxy.api.router import api_router
from render_proxy.config import settings
from render_proxy.core.logging_config import configure_logging
from render_proxy.middleware.request_id import RequestIDMiddleware
from render_proxy.services.session import browser_session

# Configure structured logging (must happen before any logger is created)
configure_logging(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=settings.SENTRY_ENVIRONMENT,
        release=f"render-proxy@{settings.APP_VERSION}",
    )

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the shared session; on shutdown drain admitted work, then close it."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await browser_session.start()
    logger.info(
        "MAX_CONCURRENCY=%d, NAV_TIMEOUT=%d, GOTO_WAIT=%s",
        settings.MAX_CONCURRENCY,
        settings.NAV_TIMEOUT,
        settings.GOTO_WAIT,
    )

    yield

    logger.info("Shutting down...")
    admission_gate.close()
    drained = await admission_gate.drain(timeout=settings.SHUTDOWN_DRAIN_TIMEOUT)
    if not drained:
        logger.warning(
            "Shutdown drain timed out after %.0fs with %d request(s) still admitted",
            settings.SHUTDOWN_DRAIN_TIMEOUT,
            admission_gate.active,
        )
    await browser_session.close()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Rendering proxy - load pages in a persistent headless browser "
    "session and return the rendered HTML or the raw response bytes.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are a plain 400, like every other input error."""
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "error": detail})


app.include_router(api_router)
