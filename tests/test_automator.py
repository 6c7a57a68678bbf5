"""Unit tests for the PageAutomator wrapper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from render_proxy.core.exceptions import NavigationFailedError
from render_proxy.services.automator import FetchResult, PageAutomator
from tests.fakes import FakeAPIResponse, FakePage, FakeSession


class TestFetchResult:
    @pytest.mark.parametrize("status,ok", [(200, True), (204, True), (302, False), (500, False)])
    def test_ok(self, status, ok):
        assert FetchResult(status=status).ok is ok


class TestPageAutomator:
    @pytest.mark.asyncio
    async def test_open_uses_session(self):
        session = FakeSession()
        automator = await PageAutomator.open(session)
        assert automator.page is session.pages[0]

    @pytest.mark.asyncio
    async def test_set_headers_drops_empty_values(self):
        page = FakePage()
        await PageAutomator(page).set_headers({"referer": "https://a/", "user-agent": ""})
        assert page.extra_headers == {"referer": "https://a/"}

    @pytest.mark.asyncio
    async def test_set_headers_all_empty_is_noop(self):
        page = MagicMock()
        page.set_extra_http_headers = AsyncMock()
        await PageAutomator(page).set_headers({"referer": None})
        page.set_extra_http_headers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_navigate_wraps_engine_errors(self):
        page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        with pytest.raises(NavigationFailedError) as exc_info:
            await PageAutomator(page).navigate("https://nope.invalid/", "load", 1000)
        assert exc_info.value.message == (
            "Navigation to https://nope.invalid/ failed: net::ERR_NAME_NOT_RESOLVED"
        )

    @pytest.mark.asyncio
    async def test_navigate_passes_none_through(self):
        page = FakePage(no_response=True)
        assert await PageAutomator(page).navigate("https://a/", "load", 1000) is None

    @pytest.mark.asyncio
    async def test_wait_skips_non_positive(self):
        page = FakePage()
        automator = PageAutomator(page)
        await automator.wait(0)
        await automator.wait(250)
        assert page.waits == [250]

    @pytest.mark.asyncio
    async def test_fetch(self):
        response = FakeAPIResponse(status=201, headers={"x-a": "1"}, body=b"done")
        page = FakePage(api_response=response)

        result = await PageAutomator(page).fetch(
            "https://a/post", method="POST", headers={"h": "v"}, data="k=v", timeout_ms=500
        )

        assert result == FetchResult(status=201, headers={"x-a": "1"}, body=b"done")
        assert page.request.calls == [
            ("https://a/post", {"method": "POST", "headers": {"h": "v"}, "data": "k=v", "timeout": 500})
        ]
        assert response.disposed

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        page = FakePage()
        automator = PageAutomator(page)
        await automator.close()
        await automator.close()
        assert automator.closed
        assert page.close_count == 1

    @pytest.mark.asyncio
    async def test_close_swallows_errors(self):
        page = MagicMock()
        page.close = AsyncMock(side_effect=PlaywrightError("Target closed"))
        automator = PageAutomator(page)
        await automator.close()
        assert automator.closed

    @pytest.mark.asyncio
    async def test_close_does_not_swallow_cancellation(self):
        """The caller's cancellation propagates; the page close still completes."""
        page = FakePage(close_delay=0.1)
        automator = PageAutomator(page)
        task = asyncio.create_task(automator.close())
        for _ in range(3):
            await asyncio.sleep(0)
        assert page.closing

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert automator.closed
        await asyncio.sleep(0.2)
        assert page.close_count == 1
