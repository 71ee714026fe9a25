"""Authentication schemas."""

from pydantic import BaseModel, Field


class Token(BaseModel):
    """Token pair issued by the remote API."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class LoginRequest(BaseModel):
    """Operator credentials."""

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class AuthUser(BaseModel):
    """Logged-in operator."""

    id: int
    name: str
    email: str


class LoginResponse(BaseModel):
    """BFF login response; ``session_id`` is the bearer for later calls."""

    session_id: str
    token_type: str = "bearer"
    user: AuthUser
