import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from render_proxy.api.deps import (
    get_gate,
    get_render_pipeline,
    get_session,
    get_submit_pipeline,
)
from render_proxy.main import app
from render_proxy.services.admission import AdmissionGate
from tests.fakes import FakeSession, make_render_pipeline, make_submit_pipeline


@pytest.fixture
def gate():
    return AdmissionGate(2)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def override_pipelines():
    """Point the API at pipelines built on a given fake session."""

    def _override(session, gate=None):
        gate = gate or AdmissionGate(2)
        render = make_render_pipeline(session, gate)
        submit = make_submit_pipeline(session, gate)
        app.dependency_overrides[get_session] = lambda: session
        app.dependency_overrides[get_gate] = lambda: gate
        app.dependency_overrides[get_render_pipeline] = lambda: render
        app.dependency_overrides[get_submit_pipeline] = lambda: submit
        return gate

    yield _override
    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as _client:
        yield _client
    app.dependency_overrides = {}
