"""Authentication endpoints."""

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPAuthorizationCredentials

from dental_admin.dependencies import CurrentWorkspace, Registry, security
from dental_admin.schemas.auth import AuthUser, LoginRequest, LoginResponse

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Operator login",
)
async def login(request: LoginRequest, registry: Registry) -> LoginResponse:
    """
    Log in against the clinic API and open a workspace.

    The returned ``session_id`` is the bearer token of every other call.

    Args:
        request: Operator credentials
        registry: Workspace registry

    Returns:
        Session id and operator profile

    Raises:
        UnauthorizedException: Invalid credentials
        ForbiddenException: Inactive account
    """
    workspace = await registry.login(request.email, request.password)
    return LoginResponse(session_id=workspace.session_id, user=workspace.user)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Authentication"],
    summary="Operator logout",
)
async def logout(
    registry: Registry,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Response:
    """
    Revoke the remote session and close the workspace.

    Unknown session ids are accepted so the call is idempotent.
    """
    await registry.logout(credentials.credentials)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/me",
    response_model=AuthUser,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Current operator",
)
async def me(workspace: CurrentWorkspace) -> AuthUser:
    """Profile of the logged-in operator."""
    return workspace.user
