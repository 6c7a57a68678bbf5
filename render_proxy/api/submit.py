import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from render_proxy.api.deps import get_submit_pipeline
from render_proxy.core.exceptions import (
    AdmissionTimeoutError,
    OriginFailureError,
    RenderProxyError,
)
from render_proxy.core.metrics import admission_timeouts_total, submit_requests_total
from render_proxy.schemas.submit import SubmitRequest, SubmitResponse
from render_proxy.services.submit import SubmitPipeline

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/download-submit",
    response_model=SubmitResponse,
    response_model_exclude_none=True,
    summary="Replay a form POST from the browser session",
    description="Warm up on a same-origin page, then POST the form-encoded 'data' to 'url' from inside the page so the session's cookies and referer are reused. The origin body is returned base64-encoded.",
)
async def download_submit(
    body: SubmitRequest,
    pipeline: SubmitPipeline = Depends(get_submit_pipeline),
):
    try:
        result = await pipeline.submit(
            body.data, url=body.url, referer_path=body.referer_path
        )
    except OriginFailureError as e:
        submit_requests_total.labels(status="origin_failure").inc()
        logger.warning("Submit origin failure: %s", e.message)
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message, "status_code": e.status_code},
        )
    except RenderProxyError as e:
        if isinstance(e, AdmissionTimeoutError):
            admission_timeouts_total.inc()
        submit_requests_total.labels(status=str(e.status_code)).inc()
        logger.warning("Submit failed: %s", e.message)
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message},
        )

    submit_requests_total.labels(status="success").inc()
    return SubmitResponse(
        success=True,
        data=result.data,
        status_code=result.status_code,
        headers=result.headers,
        buffer_size=result.buffer_size,
    )
