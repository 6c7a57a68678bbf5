"""Narrow page-automation interface the pipelines depend on.

Wraps one Playwright page for the duration of one request. The pipelines
never touch Playwright directly, which keeps their retry and teardown logic
independent of the browser engine.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Response

from render_proxy.core.exceptions import NavigationFailedError

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a network request issued from inside a page."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class PageAutomator:
    """One page, opened from the shared session and closed exactly once."""

    def __init__(self, page: Page):
        self._page = page
        self._closed = False

    @classmethod
    async def open(cls, session) -> "PageAutomator":
        page = await session.new_page()
        return cls(page)

    @property
    def page(self) -> Page:
        return self._page

    @property
    def closed(self) -> bool:
        return self._closed

    async def set_headers(self, headers: dict[str, str]) -> None:
        headers = {k: v for k, v in headers.items() if v}
        if headers:
            await self._page.set_extra_http_headers(headers)

    async def navigate(
        self, url: str, wait_until: str, timeout_ms: int
    ) -> Response | None:
        """Navigate and return the main response.

        None means the browser produced no response object (e.g. the page
        was replaced before it committed). Engine errors, timeouts included,
        surface as NavigationFailedError.
        """
        try:
            return await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightError as e:
            raise NavigationFailedError(f"Navigation to {url} failed: {e.message}") from e

    async def content(self) -> str:
        """Rendered DOM serialized as HTML."""
        return await self._page.content()

    async def wait(self, ms: float) -> None:
        if ms > 0:
            await self._page.wait_for_timeout(ms)

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        data: str | bytes | None = None,
        timeout_ms: int | None = None,
    ) -> FetchResult:
        """Issue a request through the page's own request context.

        The request shares the browser context's cookie jar, so it carries
        exactly the cookies the page itself would send.
        """
        kwargs: dict = {"method": method, "headers": headers or {}}
        if data is not None:
            kwargs["data"] = data
        if timeout_ms is not None:
            kwargs["timeout"] = timeout_ms

        response = await self._page.request.fetch(url, **kwargs)
        try:
            body = await response.body()
            return FetchResult(
                status=response.status,
                headers=dict(response.headers),
                body=body or b"",
            )
        finally:
            await response.dispose()

    async def close(self) -> None:
        """Close the page. Idempotent.

        If the caller is cancelled meanwhile, the shielded close carries on
        in the background and the cancellation propagates.
        """
        if self._closed:
            return
        self._closed = True
        try:
            await asyncio.shield(self._page.close())
        except Exception as e:
            logger.debug("Page close failed: %s", e)
