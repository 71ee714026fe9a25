"""Authenticated client for the remote clinic REST API."""

from typing import Any

import httpx
import structlog

from dental_admin.config import Settings, settings
from dental_admin.core.exceptions import (
    AppException,
    ForbiddenException,
    NetworkException,
    UnauthorizedException,
    raise_for_response,
)
from dental_admin.core.session import ExpiredCallback, SessionContext, TokenRefresher
from dental_admin.schemas.auth import AuthUser, Token

logger = structlog.get_logger(__name__)


class ApiClient:
    """
    Issue requests against ``{CLINIC_API_URL}/api/v1``.

    Every request carries the session's bearer token. A 401 triggers one
    coordinated token refresh and the request is retried once with the
    new token. Transport failures are raised as ``NetworkException``;
    HTTP error statuses are returned to the caller, which decides how to
    interpret them.
    """

    def __init__(
        self,
        session: SessionContext,
        http: httpx.AsyncClient | None = None,
        config: Settings | None = None,
        on_session_expired: ExpiredCallback | None = None,
    ):
        """
        Initialize the client.

        Args:
            session: Session context providing the tokens
            http: Preconfigured HTTP client (tests pass a mock transport)
            config: Settings override
            on_session_expired: Called when the session cannot be refreshed
        """
        self.config = config or settings
        self.session = session
        self.http = http or httpx.AsyncClient(
            base_url=self.config.clinic_api_base_url,
            timeout=self.config.request_timeout_seconds,
        )
        self.refresher = TokenRefresher(session, self._refresh_tokens, on_session_expired)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.http.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        headers: dict[str, str],
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            return await self.http.request(
                method,
                path,
                json=json,
                params=params,
                headers={"Content-Type": "application/json", **headers},
            )
        except httpx.HTTPError as e:
            logger.warning("clinic_api_unreachable", method=method, path=path, error=str(e))
            raise NetworkException() from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Send an authenticated request.

        Args:
            method: HTTP method
            path: Path relative to the API base, e.g. ``/appointments``
            json: Optional JSON body
            params: Optional query parameters

        Returns:
            The response, whatever its status

        Raises:
            NetworkException: If the API cannot be reached
            SessionExpiredException: If a 401 could not be recovered
        """
        used_token = self.session.access_token
        response = await self._send(method, path, self.session.auth_headers(), json, params)

        if response.status_code != 401:
            return response

        logger.info("access_token_rejected", method=method, path=path)

        if self.session.access_token and self.session.access_token != used_token:
            # Another request already rotated the token
            new_token = self.session.access_token
        else:
            new_token = await self.refresher.refresh()

        return await self._send(
            method,
            path,
            {"Authorization": f"Bearer {new_token}"},
            json,
            params,
        )

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        """Send an authenticated GET."""
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> httpx.Response:
        """Send an authenticated POST."""
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> httpx.Response:
        """Send an authenticated PUT."""
        return await self.request("PUT", path, json=json)

    async def _refresh_tokens(self, refresh_token: str) -> Token:
        response = await self._send(
            "POST",
            "/auth/refresh",
            {},
            {"refresh_token": refresh_token},
        )
        raise_for_response(response)
        return Token.model_validate(response.json())

    async def login(self, email: str, password: str) -> AuthUser:
        """
        Log in with operator credentials.

        Args:
            email: Operator email
            password: Operator password

        Returns:
            Authenticated user

        Raises:
            UnauthorizedException: Invalid credentials
            ForbiddenException: Inactive account
            AppException: Any other server failure
        """
        response = await self._send(
            "POST",
            "/auth/login",
            {},
            {"email": email, "password": password},
        )

        if response.status_code == 401:
            raise UnauthorizedException("Credenciales inválidas")
        if response.status_code == 403:
            raise ForbiddenException("Cuenta inactiva")
        if not response.is_success:
            raise AppException("Error del servidor al iniciar sesión", status_code=502)

        data = response.json()
        self.session.set_tokens(Token.model_validate(data))
        self.session.user = _user_from_login(data, email)

        try:
            me = await self._send("GET", "/auth/me", self.session.auth_headers())
            if me.is_success:
                body = me.json()
                self.session.user = AuthUser(
                    id=body.get("admin_id") or self.session.user.id,
                    name=body.get("name") or self.session.user.name,
                    email=body.get("email") or self.session.user.email,
                )
        except (AppException, ValueError) as e:
            logger.warning("profile_fetch_failed", error=str(e))

        logger.info("operator_logged_in", user_id=self.session.user.id)
        return self.session.user

    async def logout(self) -> None:
        """Revoke the refresh token remotely, then always clear the session."""
        refresh_token = self.session.refresh_token
        try:
            if refresh_token and self.session.access_token:
                await self._send(
                    "POST",
                    "/auth/logout",
                    self.session.auth_headers(),
                    {"refresh_token": refresh_token},
                )
        except NetworkException as e:
            logger.warning("remote_logout_failed", error=str(e))
        finally:
            self.session.clear()
            logger.info("operator_logged_out")


def _user_from_login(data: dict[str, Any], email: str) -> AuthUser:
    user = data.get("user") or {}
    first = user.get("first_name") or ""
    last = user.get("last_name") or ""
    name = user.get("name") or f"{first} {last}".strip() or "Administrador"
    return AuthUser(
        id=data.get("admin_id") or user.get("id") or 1,
        name=name,
        email=user.get("email") or email,
    )
