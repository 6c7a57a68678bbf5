import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from render_proxy.api.deps import get_render_pipeline
from render_proxy.core.exceptions import (
    AdmissionTimeoutError,
    NoBodyError,
    RenderProxyError,
)
from render_proxy.core.metrics import admission_timeouts_total, render_requests_total
from render_proxy.schemas.render import ForwardedHeaders, normalize_target_url
from render_proxy.services.render import RenderPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/render",
    summary="Render a URL",
    description="Load the target in the shared headless browser session. Returns the rendered HTML, or with raw=true the primary response bytes with the origin status and content type.",
)
async def render(
    request: Request,
    url: str | None = Query(default=None, description="Absolute target URL"),
    raw: str = Query(default="false", description="'true' for the primary response bytes"),
    pipeline: RenderPipeline = Depends(get_render_pipeline),
):
    target = normalize_target_url(url)
    if target is None:
        render_requests_total.labels(mode="html", status="invalid").inc()
        return JSONResponse(
            status_code=400,
            content={
                "error": "Missing or invalid 'url' query param. "
                "Use full URL: ?url=https://example.com",
                "param": "url",
            },
        )

    raw_mode = raw.strip().lower() == "true"
    mode = "raw" if raw_mode else "html"

    try:
        result = await pipeline.render(
            target,
            raw=raw_mode,
            headers=ForwardedHeaders.from_mapping(request.headers),
        )
    except NoBodyError:
        # 204 must not carry a body
        render_requests_total.labels(mode=mode, status="no_body").inc()
        return Response(status_code=204)
    except RenderProxyError as e:
        if isinstance(e, AdmissionTimeoutError):
            admission_timeouts_total.inc()
        render_requests_total.labels(mode=mode, status=str(e.status_code)).inc()
        logger.warning("Render failed for %s: %s", target, e.message)
        return PlainTextResponse(e.message, status_code=e.status_code)

    render_requests_total.labels(mode=mode, status="success").inc()
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.media_type,
        headers=result.headers,
    )
