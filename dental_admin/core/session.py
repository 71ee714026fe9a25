"""Operator session state and coordinated token refresh."""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from dental_admin.core.exceptions import NetworkException, SessionExpiredException
from dental_admin.schemas.auth import AuthUser, Token

logger = structlog.get_logger(__name__)

RefreshCall = Callable[[str], Awaitable[Token]]
ExpiredCallback = Callable[[], None]


class SessionContext:
    """Tokens and user of one logged-in operator."""

    def __init__(
        self,
        access_token: str | None = None,
        refresh_token: str | None = None,
        user: AuthUser | None = None,
    ):
        """Initialize session with optional tokens and user."""
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.user = user

    @property
    def is_authenticated(self) -> bool:
        """True while an access token is held."""
        return bool(self.access_token)

    def set_tokens(self, token: Token) -> None:
        """Store a freshly issued token pair."""
        self.access_token = token.access_token
        self.refresh_token = token.refresh_token

    def clear(self) -> None:
        """Forget tokens and user."""
        self.access_token = None
        self.refresh_token = None
        self.user = None

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the current access token."""
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}


class TokenRefresher:
    """
    Single-flight refresh gate.

    The first caller that needs a new token performs the refresh; callers
    arriving while it is in flight wait in a queue and receive the same
    outcome, so concurrent 401s cause exactly one refresh request.
    """

    def __init__(
        self,
        session: SessionContext,
        refresh_call: RefreshCall,
        on_session_expired: ExpiredCallback | None = None,
    ):
        """
        Initialize the gate.

        Args:
            session: Session whose tokens are rotated
            refresh_call: Coroutine exchanging a refresh token for a new pair
            on_session_expired: Called once each time the session is dropped
        """
        self.session = session
        self._refresh_call = refresh_call
        self._on_session_expired = on_session_expired
        self._refreshing = False
        self._waiters: list[asyncio.Future[str]] = []

    @property
    def refreshing(self) -> bool:
        """True while a refresh request is in flight."""
        return self._refreshing

    async def refresh(self) -> str:
        """
        Obtain a new access token.

        Returns:
            The new access token

        Raises:
            SessionExpiredException: If there is no refresh token or the
                refresh request fails
            NetworkException: In waiting callers, when the refresh they
                waited on was cancelled
        """
        if self._refreshing:
            waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            return await waiter

        self._refreshing = True
        try:
            refresh_token = self.session.refresh_token
            if not refresh_token:
                raise SessionExpiredException("No refresh token available")

            try:
                token = await self._refresh_call(refresh_token)
            except Exception as e:
                logger.warning("token_refresh_failed", error=str(e))
                raise SessionExpiredException() from e

            self.session.set_tokens(token)
            logger.info("token_refreshed")
            self._flush(token.access_token, None)
            return token.access_token
        except SessionExpiredException as e:
            self._flush(None, e)
            self.session.clear()
            if self._on_session_expired is not None:
                self._on_session_expired()
            raise
        except BaseException:
            # Cancelled mid-refresh: the tokens are untouched, release the queue
            logger.warning("token_refresh_interrupted", waiters=len(self._waiters))
            self._flush(None, NetworkException("Token refresh interrupted"))
            raise
        finally:
            self._refreshing = False

    def _flush(self, token: str | None, error: Exception | None) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if waiter.done():
                continue
            if token is not None:
                waiter.set_result(token)
            else:
                waiter.set_exception(error or SessionExpiredException())
