import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from render_proxy.api.deps import get_gate, get_session
from render_proxy.config import settings
from render_proxy.core.metrics import get_metrics, get_metrics_content_type, observe_gate

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    summary="Liveness check",
    description="Basic liveness probe that returns HTTP 200 'ok' if the process is running. Touches neither the browser nor the admission gate.",
    response_class=PlainTextResponse,
)
async def liveness():
    """Liveness probe, 200 while the process is running."""
    return "ok"


@router.get(
    "/health/ready",
    summary="Readiness check",
    description="Readiness probe. Returns HTTP 200 with admission statistics when the browser session is alive and the admission gate accepts work, or HTTP 503 otherwise.",
)
async def readiness(session=Depends(get_session), gate=Depends(get_gate)):
    """Readiness probe: browser session alive and admission gate open."""
    checks = {
        "browser_session": "ok" if session.is_alive else "not running",
        "admission": "ok" if not gate.closed else "closed",
    }
    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not ready",
            "checks": checks,
            "admission_stats": gate.stats(),
        },
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose application metrics in Prometheus exposition format. Returns HTTP 404 if metrics collection is disabled in the application configuration.",
)
async def metrics(gate=Depends(get_gate)):
    """Prometheus metrics endpoint."""
    if not settings.METRICS_ENABLED:
        return Response(content="Metrics disabled", status_code=404)

    observe_gate(gate)
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type(),
    )
