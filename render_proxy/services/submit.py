"""Form POST replayed from inside the shared browser session.

A same-origin warm-up page is loaded first, so the POST goes out with the
cookies and referer a real visitor would have, then the request is issued
through the page's own request context.
"""

import base64
import logging
import time
from urllib.parse import parse_qsl, urljoin, urlsplit

from render_proxy.config import settings
from render_proxy.core.exceptions import (
    InvalidInputError,
    NavigationFailedError,
    OriginFailureError,
    RenderError,
    RenderProxyError,
)
from render_proxy.core.metrics import observe_gate, submit_duration_seconds
from render_proxy.schemas.render import normalize_target_url
from render_proxy.schemas.submit import SubmitResult
from render_proxy.services.admission import AdmissionGate
from render_proxy.services.automator import PageAutomator

logger = logging.getLogger(__name__)


def validate_form_data(data: str | None, required_fields: list[str]) -> dict[str, str]:
    """Check ``data`` is a urlencoded form carrying every required numeric field.

    Returns the parsed fields. Extra fields are allowed.
    """
    if not data or not data.strip():
        raise InvalidInputError("Missing 'data' form body", param="data")

    try:
        pairs = parse_qsl(data.strip(), keep_blank_values=True, strict_parsing=True)
    except ValueError:
        raise InvalidInputError(
            "Malformed 'data': expected key=value pairs joined by '&'", param="data"
        )

    fields = dict(pairs)
    missing = [
        name for name in required_fields if not fields.get(name, "").isdigit()
    ]
    if missing:
        raise InvalidInputError(
            "Malformed 'data': expected numeric fields "
            + ", ".join(f"{name}=<digits>" for name in required_fields),
            param="data",
        )
    return fields


def warmup_url_for(target_url: str, referer_path: str) -> str:
    """Same-origin URL for ``referer_path`` on the target's host."""
    parts = urlsplit(target_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    path = referer_path or "/"
    if not path.startswith("/"):
        path = "/" + path
    return urljoin(origin, path)


class SubmitPipeline:
    def __init__(
        self,
        session,
        gate: AdmissionGate,
        *,
        default_url: str | None = None,
        default_referer_path: str | None = None,
        required_fields: list[str] | None = None,
        settle_delay_ms: int | None = None,
        wait_until: str | None = None,
        nav_timeout_ms: int | None = None,
        admission_timeout: float | None = None,
    ):
        self.session = session
        self.gate = gate
        self.default_url = settings.SUBMIT_DEFAULT_URL if default_url is None else default_url
        self.default_referer_path = (
            default_referer_path or settings.SUBMIT_DEFAULT_REFERER_PATH
        )
        self.required_fields = list(
            settings.SUBMIT_REQUIRED_FIELDS if required_fields is None else required_fields
        )
        self.settle_delay_ms = (
            settings.SUBMIT_SETTLE_DELAY if settle_delay_ms is None else settle_delay_ms
        )
        self.wait_until = wait_until or settings.GOTO_WAIT
        self.nav_timeout_ms = nav_timeout_ms or settings.NAV_TIMEOUT
        self.admission_timeout = (
            settings.ADMISSION_TIMEOUT if admission_timeout is None else admission_timeout
        )

    async def submit(
        self,
        data: str | None,
        url: str | None = None,
        referer_path: str | None = None,
    ) -> SubmitResult:
        # Validation happens before admission so bad input never holds a slot
        validate_form_data(data, self.required_fields)
        target = normalize_target_url(url or self.default_url)
        if target is None:
            raise InvalidInputError(
                "Missing or invalid 'url'. Use a full URL: https://example.com/...",
                param="url",
            )
        warmup = warmup_url_for(target, referer_path or self.default_referer_path)

        start = time.monotonic()
        try:
            async with self.gate.slot(timeout=self.admission_timeout):
                observe_gate(self.gate)
                automator = None
                try:
                    automator = await PageAutomator.open(self.session)
                    return await self._submit_from_page(automator, target, warmup, data)
                except RenderProxyError:
                    raise
                except Exception as e:
                    logger.exception("Submit error for %s", target)
                    raise RenderError(f"Submit error: {e}") from e
                finally:
                    if automator is not None:
                        await automator.close()
        finally:
            observe_gate(self.gate)
            submit_duration_seconds.observe(time.monotonic() - start)

    async def _submit_from_page(
        self, automator: PageAutomator, target: str, warmup: str, data: str
    ) -> SubmitResult:
        logger.info("Warming up on %s before submitting to %s", warmup, target)
        response = await automator.navigate(warmup, self.wait_until, self.nav_timeout_ms)
        if response is None:
            raise NavigationFailedError("No response from warm-up page (navigation failed).")

        await automator.wait(self.settle_delay_ms)

        parts = urlsplit(target)
        result = await automator.fetch(
            target,
            method="POST",
            headers={
                "content-type": "application/x-www-form-urlencoded",
                "referer": warmup,
                "origin": f"{parts.scheme}://{parts.netloc}",
            },
            data=data,
            timeout_ms=self.nav_timeout_ms,
        )
        logger.info(
            "Submit to %s returned status %d (%d bytes)",
            target,
            result.status,
            len(result.body),
        )

        if not result.ok:
            raise OriginFailureError(result.status)

        return SubmitResult(
            status_code=result.status,
            headers=result.headers,
            data=base64.b64encode(result.body).decode(),
            buffer_size=len(result.body),
        )
