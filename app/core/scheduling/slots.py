"""
Slot Query Engine.

Answers "which slots of this service can still be booked on this day".
Slot times are stored as naive UTC; day windows are taken in the business
timezone.
"""

import logging
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.scheduling.catalog import ServiceInfo
from app.infra.database import async_session_factory
from app.models.database import Appointment, Slot

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching stored slot times."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def business_tz() -> ZoneInfo:
    """Timezone used for day windows and rendered times."""
    return ZoneInfo(settings.business_timezone)


def day_bounds(day: date, tz: Optional[ZoneInfo] = None) -> tuple[datetime, datetime]:
    """Naive UTC [start, end) of a calendar day in the business timezone."""
    tz = tz or business_tz()
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return to_naive_utc(start), to_naive_utc(end)


def to_local(value: datetime, tz: Optional[ZoneInfo] = None) -> datetime:
    """Convert a stored naive UTC datetime to the business timezone."""
    tz = tz or business_tz()
    return value.replace(tzinfo=timezone.utc).astimezone(tz)


@dataclass
class SlotView:
    """A slot as seen by the conversation layer."""

    id: int
    service_id: int
    start_at: datetime
    end_at: datetime
    is_available: bool = True
    service: Optional[ServiceInfo] = None

    @property
    def local_start(self) -> datetime:
        """Start time in the business timezone."""
        return to_local(self.start_at)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "service_id": self.service_id,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "is_available": self.is_available,
        }


class SlotQueryEngine:
    """
    Query bookable slots.

    A slot is bookable when it starts at or after now + cutoff. The floor is
    computed once per call.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        page_size: Optional[int] = None,
    ):
        """Initialize engine.

        Args:
            session_factory: Database session factory (uses the app factory if not provided)
            page_size: Maximum slots returned for one day (default: slot_page_size)
        """
        self._session_factory = session_factory or async_session_factory
        self._page_size = page_size or settings.slot_page_size

    async def list_bookable(
        self,
        service_id: int,
        day: date,
        cutoff_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Iterator[SlotView]:
        """List bookable slots of a service on a day.

        Args:
            service_id: Service identifier
            day: Calendar day in the business timezone
            cutoff_minutes: Minimum lead time (default: booking_cutoff_min)
            now: Evaluation time (default: current time)

        Returns:
            Iterator over SlotView ordered by start time, at most page_size
            items. Empty when nothing qualifies. Call again to re-query.
        """
        if cutoff_minutes is None:
            cutoff_minutes = settings.booking_cutoff_min
        floor = to_naive_utc(now or utcnow()) + timedelta(minutes=cutoff_minutes)
        day_start, day_end = day_bounds(day)
        lower = max(day_start, floor)

        async with self._session_factory() as db:
            result = await db.execute(
                select(Slot, Appointment.id)
                .outerjoin(Appointment, Appointment.slot_id == Slot.id)
                .where(
                    Slot.service_id == service_id,
                    Slot.start_at >= lower,
                    Slot.start_at < day_end,
                )
                .order_by(Slot.start_at, Slot.id)
                .limit(self._page_size)
            )
            rows = result.all()

        slots = [
            SlotView(
                id=slot.id,
                service_id=slot.service_id,
                start_at=slot.start_at,
                end_at=slot.end_at,
                is_available=appointment_id is None,
            )
            for slot, appointment_id in rows
        ]
        logger.debug(
            f"Service {service_id} on {day.isoformat()}: {len(slots)} slots "
            f"from {lower.isoformat()}"
        )
        return iter(slots)

    async def get_slot(self, slot_id: int) -> Optional[SlotView]:
        """Get a slot with its service.

        Args:
            slot_id: Slot identifier

        Returns:
            SlotView or None if the slot does not exist
        """
        async with self._session_factory() as db:
            result = await db.execute(
                select(Slot)
                .options(selectinload(Slot.service), selectinload(Slot.appointment))
                .where(Slot.id == slot_id)
            )
            slot = result.scalar_one_or_none()

        if slot is None:
            return None

        return SlotView(
            id=slot.id,
            service_id=slot.service_id,
            start_at=slot.start_at,
            end_at=slot.end_at,
            is_available=slot.appointment is None,
            service=ServiceInfo.from_model(slot.service),
        )

    async def month_availability(
        self,
        service_id: int,
        year: int,
        month: int,
        cutoff_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[int, dict[str, int]]:
        """Count slots per day of a month for the calendar picker.

        Args:
            service_id: Service identifier
            year: Calendar year
            month: Calendar month (1-12)
            cutoff_minutes: Minimum lead time (default: booking_cutoff_min)
            now: Evaluation time (default: current time)

        Returns:
            Mapping of day of month to {"total": n, "available": m}; days
            without slots are omitted. "available" counts free slots past the cutoff.
        """
        if cutoff_minutes is None:
            cutoff_minutes = settings.booking_cutoff_min
        floor = to_naive_utc(now or utcnow()) + timedelta(minutes=cutoff_minutes)

        tz = business_tz()
        first_day = date(year, month, 1)
        last_day = date(year, month, monthrange(year, month)[1])
        month_start, _ = day_bounds(first_day, tz)
        _, month_end = day_bounds(last_day, tz)

        async with self._session_factory() as db:
            result = await db.execute(
                select(Slot.start_at, Appointment.id)
                .outerjoin(Appointment, Appointment.slot_id == Slot.id)
                .where(
                    Slot.service_id == service_id,
                    Slot.start_at >= month_start,
                    Slot.start_at < month_end,
                )
            )
            rows = result.all()

        days: dict[int, dict[str, int]] = {}
        for start_at, appointment_id in rows:
            key = to_local(start_at, tz).day
            counts = days.setdefault(key, {"total": 0, "available": 0})
            counts["total"] += 1
            if appointment_id is None and start_at >= floor:
                counts["available"] += 1

        return dict(sorted(days.items()))


# Singleton
_engine: Optional[SlotQueryEngine] = None


def get_slot_query_engine() -> SlotQueryEngine:
    """Get singleton SlotQueryEngine."""
    global _engine
    if _engine is None:
        _engine = SlotQueryEngine()
    return _engine
