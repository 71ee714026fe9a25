"""Per-operator workspaces of the backend-for-frontend."""

import secrets
import time
from collections.abc import Callable

import httpx
import structlog

from dental_admin.config import Settings, settings
from dental_admin.controllers.appointments_controller import AppointmentsController
from dental_admin.controllers.dashboard_controller import DashboardController
from dental_admin.core.api_client import ApiClient
from dental_admin.core.session import SessionContext
from dental_admin.schemas.auth import AuthUser
from dental_admin.services.appointment_service import AppointmentService
from dental_admin.services.booking_service import BookingService
from dental_admin.services.cancellation_service import CancellationWorkflow
from dental_admin.services.catalog_service import CatalogService
from dental_admin.services.medical_history_service import MedicalHistoryService
from dental_admin.services.notification_service import NotificationService
from dental_admin.services.payment_service import PaymentService
from dental_admin.services.reconciler import AppointmentReconciler

logger = structlog.get_logger(__name__)

HttpFactory = Callable[[], httpx.AsyncClient]
MonotonicClock = Callable[[], float]


class AdminWorkspace:
    """Session, API client and view state of one logged-in operator."""

    def __init__(self, session_id: str, api: ApiClient, config: Settings | None = None):
        """Wire every service of the admin views around one API client."""
        config = config or settings
        tz = config.tzinfo

        self.session_id = session_id
        self.last_seen = 0.0
        self.api = api
        self.notifications = NotificationService(ttl_seconds=config.notice_ttl_seconds)
        self.reconciler = AppointmentReconciler(api, limit=config.default_page_limit)
        self.catalogs = CatalogService(api)
        self.payments = PaymentService(api)
        self.cancellation = CancellationWorkflow(api, self.reconciler, self.notifications)
        self.histories = MedicalHistoryService(api, self.notifications, tz=tz)
        self.mutations = AppointmentService(
            api,
            self.reconciler,
            self.cancellation,
            self.payments,
            self.notifications,
            catalogs=self.catalogs,
            tz=tz,
        )
        self.booking = BookingService(
            api, self.reconciler, self.notifications, self.catalogs, tz=tz
        )
        self.appointments = AppointmentsController(
            self.reconciler,
            self.mutations,
            self.cancellation,
            self.booking,
            self.histories,
            self.catalogs,
        )
        self.dashboard = DashboardController(
            api, self.payments, self.reconciler, tz=tz, months=config.dashboard_months
        )

    @property
    def session(self) -> SessionContext:
        """Session context of the operator."""
        return self.api.session

    @property
    def user(self) -> AuthUser | None:
        """Logged-in operator."""
        return self.api.session.user


class WorkspaceRegistry:
    """
    Workspaces keyed by an opaque session id.

    The session id is the bearer credential of the BFF; the remote tokens
    never leave the server. A workspace whose session could not be
    refreshed is dropped on its next lookup. Workspaces unused for
    ``SESSION_IDLE_SECONDS`` are closed on their next lookup, and every
    idle one is swept when an operator logs in.
    """

    def __init__(
        self,
        config: Settings | None = None,
        http_factory: HttpFactory | None = None,
        clock: MonotonicClock = time.monotonic,
    ):
        """
        Initialize an empty registry.

        Args:
            config: Settings override
            http_factory: Builds the HTTP client of each workspace (tests
                inject a mock transport here)
            clock: Monotonic time source for idle tracking
        """
        self.config = config or settings
        self.http_factory = http_factory
        self.clock = clock
        self._workspaces: dict[str, AdminWorkspace] = {}

    def __len__(self) -> int:
        return len(self._workspaces)

    def _new_http(self) -> httpx.AsyncClient:
        if self.http_factory is not None:
            return self.http_factory()
        return httpx.AsyncClient(
            base_url=self.config.clinic_api_base_url,
            timeout=self.config.request_timeout_seconds,
        )

    async def probe_remote(self) -> bool:
        """
        Check that the remote clinic API answers.

        Any HTTP response counts as reachable; only transport failures do not.
        """
        http = self._new_http()
        try:
            response = await http.get("/health")
        except httpx.HTTPError as e:
            logger.warning("clinic_api_probe_failed", error=str(e))
            return False
        finally:
            await http.aclose()

        logger.debug("clinic_api_probe", status_code=response.status_code)
        return True

    async def login(self, email: str, password: str) -> AdminWorkspace:
        """
        Log an operator in and open a workspace.

        Raises:
            AppException: If the remote API rejects the credentials
        """
        session_id = secrets.token_urlsafe(32)
        api = ApiClient(
            SessionContext(),
            http=self._new_http(),
            config=self.config,
            on_session_expired=lambda: logger.info(
                "operator_session_expired", session_id=session_id[:8]
            ),
        )
        try:
            await api.login(email, password)
        except Exception:
            await api.aclose()
            raise

        await self.evict_idle()
        workspace = AdminWorkspace(session_id, api, self.config)
        workspace.last_seen = self.clock()
        self._workspaces[session_id] = workspace
        logger.info("workspace_opened", session_id=session_id[:8], workspaces=len(self))
        return workspace

    async def get(self, session_id: str) -> AdminWorkspace | None:
        """Workspace of a live session, or None."""
        workspace = self._workspaces.get(session_id)
        if workspace is None:
            return None
        if not workspace.session.is_authenticated:
            await self.remove(session_id)
            return None
        now = self.clock()
        if self._is_idle(workspace, now):
            logger.info("workspace_idle_expired", session_id=session_id[:8])
            await self.remove(session_id)
            return None
        workspace.last_seen = now
        return workspace

    def _is_idle(self, workspace: AdminWorkspace, now: float) -> bool:
        return now - workspace.last_seen > self.config.session_idle_seconds

    async def evict_idle(self) -> int:
        """
        Close every workspace idle for longer than ``SESSION_IDLE_SECONDS``.

        Returns:
            Number of workspaces closed
        """
        now = self.clock()
        idle = [sid for sid, ws in self._workspaces.items() if self._is_idle(ws, now)]
        for session_id in idle:
            await self.remove(session_id)
        if idle:
            logger.info("idle_workspaces_evicted", count=len(idle), workspaces=len(self))
        return len(idle)

    async def logout(self, session_id: str) -> None:
        """Log the operator out remotely and drop the workspace."""
        workspace = self._workspaces.get(session_id)
        if workspace is None:
            return
        await workspace.api.logout()
        await self.remove(session_id)

    async def remove(self, session_id: str) -> None:
        """Drop a workspace and close its HTTP client."""
        workspace = self._workspaces.pop(session_id, None)
        if workspace is not None:
            await workspace.api.aclose()
            logger.info("workspace_closed", session_id=session_id[:8], workspaces=len(self))

    async def aclose(self) -> None:
        """Close every workspace."""
        for session_id in list(self._workspaces):
            await self.remove(session_id)
