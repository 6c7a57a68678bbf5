"""Integration tests for POST /download-submit."""

import base64

import pytest
from httpx import AsyncClient

from tests.fakes import FakeAPIResponse, FakePage, FakeSession


class TestDownloadSubmit:
    @pytest.mark.asyncio
    async def test_success(self, client: AsyncClient, override_pipelines):
        """The origin body comes back base64-encoded with its status and headers."""
        api_response = FakeAPIResponse(
            status=200, headers={"content-type": "application/zip"}, body=b"PK\x03\x04zip"
        )
        session = FakeSession(lambda: FakePage(api_response=api_response))
        gate = override_pipelines(session)

        resp = await client.post(
            "/download-submit",
            json={
                "url": "https://portal.example.com/download",
                "data": "id=42&type=1",
                "refererPath": "/files",
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert base64.b64decode(data["data"]) == b"PK\x03\x04zip"
        assert data["status_code"] == 200
        assert data["headers"] == {"content-type": "application/zip"}
        assert data["buffer_size"] == 7
        assert "error" not in data

        assert session.pages[0].goto_calls[0][0] == "https://portal.example.com/files"
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_default_url(self, client: AsyncClient, override_pipelines):
        session = FakeSession()
        override_pipelines(session)

        resp = await client.post("/download-submit", json={"data": "id=1&type=2"})
        assert resp.status_code == 200
        assert session.pages[0].request.calls[0][0] == "https://portal.example.com/download"

    @pytest.mark.asyncio
    async def test_missing_data(self, client: AsyncClient, override_pipelines):
        session = FakeSession()
        override_pipelines(session)

        resp = await client.post("/download-submit", json={"url": "https://a.example/"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Missing 'data' form body"}
        assert session.pages == []

    @pytest.mark.asyncio
    async def test_malformed_data(self, client: AsyncClient, override_pipelines):
        session = FakeSession()
        override_pipelines(session)

        resp = await client.post("/download-submit", json={"data": "id=abc&type=2"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert "id=<digits>" in body["error"]

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, client: AsyncClient, override_pipelines):
        """A body that is not JSON is a 400, not a 422."""
        override_pipelines(FakeSession())

        resp = await client.post(
            "/download-submit",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    @pytest.mark.asyncio
    async def test_origin_failure_status(self, client: AsyncClient, override_pipelines):
        """A non-2xx origin answer is returned with the origin's status code."""
        api_response = FakeAPIResponse(status=403, body=b"forbidden")
        session = FakeSession(lambda: FakePage(api_response=api_response))
        gate = override_pipelines(session)

        resp = await client.post("/download-submit", json={"data": "id=1&type=2"})
        assert resp.status_code == 403
        assert resp.json() == {
            "success": False,
            "error": "Origin responded with status 403",
            "status_code": 403,
        }
        assert gate.active == 0

    @pytest.mark.asyncio
    async def test_warmup_failure_is_502(self, client: AsyncClient, override_pipelines):
        session = FakeSession(lambda: FakePage(no_response=True))
        override_pipelines(session)

        resp = await client.post("/download-submit", json={"data": "id=1&type=2"})
        assert resp.status_code == 502
        assert resp.json()["success"] is False
