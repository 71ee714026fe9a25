"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dental_admin.workspace import AdminWorkspace, WorkspaceRegistry

# Security
security = HTTPBearer()


def get_registry(request: Request) -> WorkspaceRegistry:
    """Workspace registry created by the application lifespan."""
    return request.app.state.workspaces


async def get_current_workspace(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    registry: Annotated[WorkspaceRegistry, Depends(get_registry)],
) -> AdminWorkspace:
    """
    Resolve the workspace of the bearer session id.

    Args:
        credentials: Bearer credentials carrying the session id
        registry: Workspace registry

    Returns:
        The operator's workspace

    Raises:
        HTTPException: If the session is unknown or expired
    """
    workspace = await registry.get(credentials.credentials)

    if workspace is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return workspace


# Type aliases for dependency injection
Registry = Annotated[WorkspaceRegistry, Depends(get_registry)]
CurrentWorkspace = Annotated[AdminWorkspace, Depends(get_current_workspace)]
