"""
Service Catalog.

Read-only lookup of the services offered for booking. The catalog itself is
managed by an external system.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.infra.database import async_session_factory
from app.models.database import Service

logger = logging.getLogger(__name__)


@dataclass
class ServiceInfo:
    """Service details needed for rendering and booking."""

    id: int
    name: str
    duration_minutes: int
    names: dict[str, str] = field(default_factory=dict)

    def localized_name(self, lang: str) -> str:
        """Name in the given locale, falling back to the default name."""
        return self.names.get(lang) or self.name

    @classmethod
    def from_model(cls, service: Service) -> "ServiceInfo":
        """Create from a Service row."""
        names = {
            "ru": service.name_ru,
            "en": service.name_en,
            "he": service.name_he,
        }
        return cls(
            id=service.id,
            name=service.name,
            duration_minutes=service.duration_minutes,
            names={lang: name for lang, name in names.items() if name},
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
            "names": dict(self.names),
        }


class ServiceCatalog:
    """Service lookup over the services table."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        """Initialize catalog.

        Args:
            session_factory: Database session factory (uses the app factory if not provided)
        """
        self._session_factory = session_factory or async_session_factory

    async def list_services(self, limit: Optional[int] = None) -> list[ServiceInfo]:
        """List services ordered by ID.

        Args:
            limit: Maximum services to return (default: service_page_size)

        Returns:
            List of ServiceInfo
        """
        limit = limit or settings.service_page_size

        async with self._session_factory() as db:
            result = await db.execute(
                select(Service).order_by(Service.id).limit(limit)
            )
            services = result.scalars().all()

        return [ServiceInfo.from_model(s) for s in services]

    async def get_service(self, service_id: int) -> Optional[ServiceInfo]:
        """Get a service by ID.

        Args:
            service_id: Service identifier

        Returns:
            ServiceInfo or None if not found
        """
        async with self._session_factory() as db:
            service = await db.get(Service, service_id)

        if service is None:
            logger.debug(f"Service {service_id} not found")
            return None
        return ServiceInfo.from_model(service)


# Singleton
_catalog: Optional[ServiceCatalog] = None


def get_service_catalog() -> ServiceCatalog:
    """Get singleton ServiceCatalog."""
    global _catalog
    if _catalog is None:
        _catalog = ServiceCatalog()
    return _catalog
