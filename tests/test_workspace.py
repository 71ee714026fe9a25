"""Tests for the workspace registry lifecycle."""

import pytest
from httpx import AsyncClient

from dental_admin.workspace import WorkspaceRegistry

IDLE = 1800.0


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(registry: WorkspaceRegistry) -> FakeMonotonic:
    """Clock driving the registry's idle tracking."""
    fake = FakeMonotonic()
    registry.clock = fake
    return fake


@pytest.mark.asyncio
async def test_lookup_keeps_workspace_alive(
    registry: WorkspaceRegistry, clock: FakeMonotonic
) -> None:
    """Each lookup restarts the idle timer."""
    workspace = await registry.login("laura@clinic.test", "secret")

    for _ in range(3):
        clock.advance(IDLE - 1)
        assert await registry.get(workspace.session_id) is workspace

    assert len(registry) == 1


@pytest.mark.asyncio
async def test_idle_workspace_is_closed_on_lookup(
    registry: WorkspaceRegistry, clock: FakeMonotonic
) -> None:
    """A workspace idle past the limit is dropped with its HTTP client."""
    workspace = await registry.login("laura@clinic.test", "secret")

    clock.advance(IDLE + 1)

    assert await registry.get(workspace.session_id) is None
    assert len(registry) == 0
    assert workspace.api.http.is_closed


@pytest.mark.asyncio
async def test_login_sweeps_idle_workspaces(
    registry: WorkspaceRegistry, clock: FakeMonotonic
) -> None:
    """Opening a workspace closes the abandoned ones."""
    stale = [await registry.login("laura@clinic.test", "secret") for _ in range(2)]
    clock.advance(IDLE / 2)
    recent = await registry.login("laura@clinic.test", "secret")
    clock.advance(IDLE / 2 + 1)

    fresh = await registry.login("laura@clinic.test", "secret")

    assert len(registry) == 2
    assert all(ws.api.http.is_closed for ws in stale)
    assert await registry.get(recent.session_id) is recent
    assert await registry.get(fresh.session_id) is fresh


@pytest.mark.asyncio
async def test_idle_session_gets_401(
    client: AsyncClient,
    registry: WorkspaceRegistry,
    clock: FakeMonotonic,
) -> None:
    """An abandoned session is rejected with a bearer challenge."""
    login = await client.post(
        "/api/v1/auth/login", json={"email": "laura@clinic.test", "password": "secret"}
    )
    headers = {"Authorization": f"Bearer {login.json()['session_id']}"}
    assert (await client.get("/api/v1/appointments/summary", headers=headers)).status_code == 200

    clock.advance(IDLE + 1)
    response = await client.get("/api/v1/appointments/summary", headers=headers)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert len(registry) == 0
