"""Active services and specialists offered by the edit and booking forms."""

import structlog

from dental_admin.core.api_client import ApiClient
from dental_admin.core.exceptions import AppException, SessionExpiredException, raise_for_response
from dental_admin.schemas.appointments import ServiceRef, SpecialistRef

logger = structlog.get_logger(__name__)


class CatalogService:
    """Read-only catalogs; only active entries are offered."""

    def __init__(self, api: ApiClient):
        """Initialize with empty catalogs."""
        self.api = api
        self.services: list[ServiceRef] = []
        self.specialists: list[SpecialistRef] = []

    async def load(self) -> None:
        """Reload both catalogs; a failing catalog keeps its previous content."""
        services = await self._fetch("/services", ServiceRef)
        if services is not None:
            self.services = [s for s in services if s.is_active]
        specialists = await self._fetch("/specialists", SpecialistRef)
        if specialists is not None:
            self.specialists = [s for s in specialists if s.is_active]

    async def _fetch(self, path: str, model: type) -> list | None:
        try:
            response = await self.api.get(path)
            raise_for_response(response)
            return [model.model_validate(item) for item in response.json() or []]
        except SessionExpiredException:
            raise
        except (AppException, ValueError) as e:
            logger.warning("catalog_fetch_failed", path=path, error=str(e))
            return None

    def find_service(self, service_id: int | None) -> ServiceRef | None:
        """Active service by id."""
        return next((s for s in self.services if s.id == service_id), None)

    def find_specialist(self, specialist_id: int | None) -> SpecialistRef | None:
        """Active specialist by id."""
        return next((s for s in self.specialists if s.id == specialist_id), None)
