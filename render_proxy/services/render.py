import logging
import time

from render_proxy.config import settings
from render_proxy.core.exceptions import (
    ChallengeDetectedError,
    ExtractionError,
    NavigationFailedError,
    NoBodyError,
    RenderError,
    RenderProxyError,
)
from render_proxy.core.metrics import (
    challenge_detected_total,
    observe_gate,
    render_duration_seconds,
)
from render_proxy.schemas.render import ForwardedHeaders, RenderResult
from render_proxy.services.admission import AdmissionGate
from render_proxy.services.automator import PageAutomator
from render_proxy.services.challenge import is_challenged

logger = logging.getLogger(__name__)

CHALLENGE_MESSAGE = (
    "Cloudflare challenge detected in rendered HTML. "
    "The page was rendered but the challenge is still present."
)


class RenderPipeline:
    """Renders one URL end-to-end against the shared session.

    admission -> page -> navigation -> raw or rendered extraction ->
    challenge retry loop -> page teardown -> release.
    """

    def __init__(
        self,
        session,
        gate: AdmissionGate,
        *,
        wait_until: str | None = None,
        nav_timeout_ms: int | None = None,
        retry_delays: list[float] | None = None,
        admission_timeout: float | None = None,
        default_referer: str | None = None,
        default_accept_language: str | None = None,
        forward_user_agent: bool | None = None,
    ):
        self.session = session
        self.gate = gate
        self.wait_until = wait_until or settings.GOTO_WAIT
        self.nav_timeout_ms = nav_timeout_ms or settings.NAV_TIMEOUT
        self.retry_delays = list(
            settings.CHALLENGE_RETRY_DELAYS if retry_delays is None else retry_delays
        )
        self.admission_timeout = (
            settings.ADMISSION_TIMEOUT if admission_timeout is None else admission_timeout
        )
        self.default_referer = default_referer or settings.DEFAULT_REFERER
        self.default_accept_language = (
            default_accept_language or settings.DEFAULT_ACCEPT_LANGUAGE
        )
        self.forward_user_agent = (
            settings.FORWARD_USER_AGENT if forward_user_agent is None else forward_user_agent
        )

    def _request_headers(self, forwarded: ForwardedHeaders | None) -> dict[str, str]:
        forwarded = forwarded or ForwardedHeaders()
        headers = {
            "accept-language": forwarded.accept_language or self.default_accept_language,
            "referer": forwarded.referer or self.default_referer,
        }
        if self.forward_user_agent and forwarded.user_agent:
            headers["user-agent"] = forwarded.user_agent
        return headers

    async def render(
        self,
        url: str,
        raw: bool = False,
        headers: ForwardedHeaders | None = None,
    ) -> RenderResult:
        """Render ``url``; raises a RenderProxyError subclass on failure."""
        mode = "raw" if raw else "html"
        start = time.monotonic()
        try:
            async with self.gate.slot(timeout=self.admission_timeout):
                observe_gate(self.gate)
                automator = None
                try:
                    automator = await PageAutomator.open(self.session)
                    await automator.set_headers(self._request_headers(headers))
                    return await self._render_page(automator, url, raw)
                except RenderProxyError:
                    raise
                except Exception as e:
                    logger.exception("Render error for %s", url)
                    raise RenderError(f"Render error: {e}") from e
                finally:
                    if automator is not None:
                        await automator.close()
        finally:
            observe_gate(self.gate)
            render_duration_seconds.labels(mode=mode).observe(time.monotonic() - start)

    async def _render_page(
        self, automator: PageAutomator, url: str, raw: bool
    ) -> RenderResult:
        logger.info("Navigating to %s (wait=%s, raw=%s)", url, self.wait_until, raw)
        response = await automator.navigate(url, self.wait_until, self.nav_timeout_ms)
        if response is None:
            raise NavigationFailedError("No response from target (navigation failed).")

        status = response.status
        content_type = (response.headers.get("content-type") or "").lower()
        logger.info("Got status %d for %s", status, url)

        if raw:
            return await self._raw_result(response, status, content_type)

        html = await self._wait_out_challenge(automator, url)
        return RenderResult(
            status_code=200,
            body=html,
            media_type="text/html; charset=utf-8",
            headers={
                "Access-Control-Allow-Origin": "*",
                "X-Origin-Status": str(status),
            },
        )

    async def _raw_result(self, response, status: int, content_type: str) -> RenderResult:
        try:
            body = await response.body()
        except Exception as e:
            raise ExtractionError(f"Error retrieving raw body: {e}") from e
        if body is None:
            raise NoBodyError("No body from target resource.")
        return RenderResult(
            status_code=status,
            body=bytes(body),
            media_type=content_type or "application/octet-stream",
        )

    async def _wait_out_challenge(self, automator: PageAutomator, url: str) -> str:
        """Read the rendered HTML, re-reading after each backoff while challenged."""
        html = await self._read_html(automator)
        if not is_challenged(html):
            return html

        for attempt, delay in enumerate(self.retry_delays, start=1):
            logger.info(
                "Challenge detected for %s, re-checking in %.1fs (attempt %d/%d)",
                url,
                delay,
                attempt,
                len(self.retry_delays),
            )
            await automator.wait(delay * 1000)
            html = await self._read_html(automator)
            if not is_challenged(html):
                logger.info("Challenge cleared for %s on attempt %d", url, attempt)
                return html

        challenge_detected_total.inc()
        logger.warning("Challenge still present for %s, giving up", url)
        raise ChallengeDetectedError(CHALLENGE_MESSAGE)

    async def _read_html(self, automator: PageAutomator) -> str:
        try:
            return await automator.content()
        except Exception as e:
            raise ExtractionError(f"Error reading rendered HTML: {e}") from e
