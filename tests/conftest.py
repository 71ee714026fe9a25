from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from dental_admin.core.api_client import ApiClient
from dental_admin.core.session import SessionContext
from dental_admin.main import app
from dental_admin.schemas.auth import AuthUser
from dental_admin.workspace import AdminWorkspace, WorkspaceRegistry
from fakes import FakeClinicApi, http_client_for


@pytest.fixture
def fake_api() -> FakeClinicApi:
    """Seeded in-memory clinic API."""
    return FakeClinicApi()


@pytest.fixture
def session() -> SessionContext:
    """Logged-in session holding the fake API's first token pair."""
    return SessionContext(
        access_token="access-1",
        refresh_token="refresh-1",
        user=AuthUser(id=1, name="Laura Admin", email="laura@clinic.test"),
    )


@pytest_asyncio.fixture
async def api_client(
    fake_api: FakeClinicApi, session: SessionContext
) -> AsyncGenerator[ApiClient, None]:
    """API client talking to the fake clinic API."""
    client = ApiClient(session, http=http_client_for(fake_api))
    yield client
    await client.aclose()


@pytest.fixture
def workspace(api_client: ApiClient) -> AdminWorkspace:
    """Workspace wired around the fake clinic API."""
    return AdminWorkspace("test-session", api_client)


@pytest_asyncio.fixture
async def mounted_workspace(workspace: AdminWorkspace) -> AdminWorkspace:
    """Workspace with the appointments page loaded."""
    await workspace.appointments.mount()
    return workspace


@pytest_asyncio.fixture
async def registry(fake_api: FakeClinicApi) -> AsyncGenerator[WorkspaceRegistry, None]:
    """Workspace registry whose clients reach the fake clinic API."""
    registry = WorkspaceRegistry(http_factory=lambda: http_client_for(fake_api))
    yield registry
    await registry.aclose()


@pytest_asyncio.fixture
async def client(registry: WorkspaceRegistry) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client for the BFF."""
    app.state.workspaces = registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient) -> dict[str, str]:
    """Bearer headers of a logged-in operator."""
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "laura@clinic.test", "password": "secret"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['session_id']}"}
