"""
Booking Transaction Engine and Cancellation Handler.

These are the only writers of the appointments table.

Concurrency: two chats may confirm the same slot at the same instant. No
lock is taken. Both attempts run the insert and the unique constraint on
appointments.slot_id admits exactly one; the loser's IntegrityError becomes
SlotTakenError. Repeating a successful confirm therefore also yields
SlotTakenError, never a second appointment.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.errors import NotFoundOrNotOwnedError, SlotNotFoundError, SlotTakenError
from app.core.scheduling.catalog import ServiceInfo
from app.core.scheduling.slots import to_local, utcnow
from app.infra.database import async_session_factory
from app.infra.notifications import (
    BookingNotice,
    NotificationService,
    get_notification_service,
)
from app.models.database import Appointment, AppointmentStatus, Slot

logger = logging.getLogger(__name__)

WHEN_FORMAT = "%Y-%m-%d %H:%M"


@dataclass
class BookingConfirmation:
    """An appointment with the service and slot details needed for messages."""

    appointment_id: int
    slot_id: int
    chat_id: str
    status: AppointmentStatus
    service: ServiceInfo
    start_at: datetime
    end_at: datetime
    requester: Optional[str] = None

    @property
    def when(self) -> str:
        """Slot start in the business timezone."""
        return to_local(self.start_at).strftime(WHEN_FORMAT)

    @classmethod
    def from_models(
        cls,
        appointment: Appointment,
        slot: Slot,
        requester: Optional[str] = None,
    ) -> "BookingConfirmation":
        return cls(
            appointment_id=appointment.id,
            slot_id=slot.id,
            chat_id=appointment.chat_id,
            status=appointment.status,
            service=ServiceInfo.from_model(slot.service),
            start_at=slot.start_at,
            end_at=slot.end_at,
            requester=requester,
        )

    def to_notice(self, lang: Optional[str] = None) -> BookingNotice:
        """Build the operator notice for this appointment."""
        lang = lang or settings.default_locale
        kind = "cancelled" if self.status == AppointmentStatus.CANCELLED else "confirmed"
        return BookingNotice(
            kind=kind,
            appointment_id=self.appointment_id,
            service_name=self.service.localized_name(lang),
            when=self.when,
            chat_id=self.chat_id,
            requester=self.requester,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "appointment_id": self.appointment_id,
            "slot_id": self.slot_id,
            "chat_id": self.chat_id,
            "status": self.status.value,
            "service": self.service.to_dict(),
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
        }


def _is_unique_violation(error: IntegrityError) -> bool:
    """Tell a unique-constraint violation from other integrity errors."""
    orig = error.orig
    if getattr(orig, "sqlstate", None) == "23505":
        return True
    text = str(orig).lower()
    return "unique" in text or "duplicate key" in text or "uq_appointment_slot" in text


class BookingEngine:
    """Converts a chosen slot into a confirmed appointment, exactly once."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        notifier: Optional[NotificationService] = None,
    ):
        """Initialize engine.

        Args:
            session_factory: Database session factory (uses the app factory if not provided)
            notifier: Notification fan-out (uses singleton if not provided)
        """
        self._session_factory = session_factory or async_session_factory
        self._notifier = notifier

    def _get_notifier(self) -> NotificationService:
        """Get notification service."""
        if self._notifier is None:
            self._notifier = get_notification_service()
        return self._notifier

    async def confirm(
        self,
        slot_id: int,
        chat_id: str,
        requester: Optional[str] = None,
    ) -> BookingConfirmation:
        """Book a slot for a chat.

        Loads the slot and its service and inserts the appointment in one
        transaction. There is no existence check for a prior appointment;
        the unique constraint decides.

        Args:
            slot_id: Slot to book
            chat_id: Requesting chat
            requester: Display name of the user, for operator notices

        Returns:
            BookingConfirmation for the new appointment

        Raises:
            SlotNotFoundError: Slot does not exist
            SlotTakenError: Slot already has an appointment
        """
        chat_id = str(chat_id)

        try:
            async with self._session_factory() as db:
                async with db.begin():
                    result = await db.execute(
                        select(Slot)
                        .options(selectinload(Slot.service))
                        .where(Slot.id == slot_id)
                    )
                    slot = result.scalar_one_or_none()
                    if slot is None:
                        raise SlotNotFoundError(slot_id)

                    appointment = Appointment(
                        slot_id=slot.id,
                        service_id=slot.service_id,
                        chat_id=chat_id,
                        status=AppointmentStatus.CONFIRMED,
                    )
                    db.add(appointment)
                    await db.flush()

                    confirmation = BookingConfirmation.from_models(
                        appointment, slot, requester=requester
                    )
        except IntegrityError as e:
            if _is_unique_violation(e):
                logger.info(f"Slot {slot_id} already taken, rejected chat {chat_id}")
                raise SlotTakenError(slot_id) from e
            # Slot removed between the read and the insert
            logger.info(f"Slot {slot_id} vanished while booking for chat {chat_id}")
            raise SlotNotFoundError(slot_id) from e

        logger.info(
            f"Appointment {confirmation.appointment_id} confirmed: "
            f"slot {slot_id}, chat {chat_id}"
        )
        self._get_notifier().announce(confirmation.to_notice())
        return confirmation


class CancellationHandler:
    """Lets the owning chat withdraw a confirmed appointment."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        notifier: Optional[NotificationService] = None,
    ):
        """Initialize handler.

        Args:
            session_factory: Database session factory (uses the app factory if not provided)
            notifier: Notification fan-out (uses singleton if not provided)
        """
        self._session_factory = session_factory or async_session_factory
        self._notifier = notifier

    def _get_notifier(self) -> NotificationService:
        """Get notification service."""
        if self._notifier is None:
            self._notifier = get_notification_service()
        return self._notifier

    async def cancel(self, appointment_id: int, chat_id: str) -> BookingConfirmation:
        """Cancel an appointment owned by the chat.

        The status update is conditional on ownership, so a foreign or
        missing appointment is never touched. Cancelling an already
        cancelled appointment returns it unchanged. The slot stays bound to
        the cancelled appointment.

        Args:
            appointment_id: Appointment to cancel
            chat_id: Requesting chat

        Returns:
            BookingConfirmation with status cancelled

        Raises:
            NotFoundOrNotOwnedError: Appointment missing or owned by another chat
        """
        chat_id = str(chat_id)
        now = utcnow()

        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Appointment)
                    .where(
                        Appointment.id == appointment_id,
                        Appointment.chat_id == chat_id,
                        Appointment.status == AppointmentStatus.CONFIRMED,
                    )
                    .values(
                        status=AppointmentStatus.CANCELLED,
                        cancelled_at=now,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                changed = result.rowcount > 0

                loaded = await db.execute(
                    select(Appointment)
                    .options(
                        selectinload(Appointment.slot).selectinload(Slot.service)
                    )
                    .where(
                        Appointment.id == appointment_id,
                        Appointment.chat_id == chat_id,
                    )
                )
                appointment = loaded.scalar_one_or_none()
                if appointment is None:
                    # Same error whether it is missing or someone else's
                    logger.info(
                        f"Cancel of appointment {appointment_id} rejected for chat {chat_id}"
                    )
                    raise NotFoundOrNotOwnedError(appointment_id)

                confirmation = BookingConfirmation.from_models(appointment, appointment.slot)

        if changed:
            logger.info(f"Appointment {appointment_id} cancelled by chat {chat_id}")
            self._get_notifier().announce(confirmation.to_notice())
        else:
            logger.debug(f"Appointment {appointment_id} was already cancelled")
        return confirmation

    async def list_confirmed(
        self,
        chat_id: str,
        limit: Optional[int] = None,
    ) -> list[BookingConfirmation]:
        """List confirmed appointments of a chat, earliest slot first.

        Args:
            chat_id: Chat identifier
            limit: Maximum appointments (default: my_appointments_limit)

        Returns:
            List of BookingConfirmation
        """
        limit = limit or settings.my_appointments_limit

        async with self._session_factory() as db:
            result = await db.execute(
                select(Appointment)
                .join(Slot, Appointment.slot_id == Slot.id)
                .options(
                    selectinload(Appointment.slot).selectinload(Slot.service)
                )
                .where(
                    Appointment.chat_id == str(chat_id),
                    Appointment.status == AppointmentStatus.CONFIRMED,
                )
                .order_by(Slot.start_at, Appointment.id)
                .limit(limit)
            )
            appointments = result.scalars().all()

        return [BookingConfirmation.from_models(a, a.slot) for a in appointments]


# Singletons
_booking_engine: Optional[BookingEngine] = None
_cancellation_handler: Optional[CancellationHandler] = None


def get_booking_engine() -> BookingEngine:
    """Get singleton BookingEngine."""
    global _booking_engine
    if _booking_engine is None:
        _booking_engine = BookingEngine()
    return _booking_engine


def get_cancellation_handler() -> CancellationHandler:
    """Get singleton CancellationHandler."""
    global _cancellation_handler
    if _cancellation_handler is None:
        _cancellation_handler = CancellationHandler()
    return _cancellation_handler
