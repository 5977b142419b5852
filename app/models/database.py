"""
Database Models

SQLAlchemy ORM models for the slot booking core.

Services and slots are provisioned by the external catalog; this core only
reads them. Appointments are written exclusively by the booking and
cancellation engines.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    DateTime, ForeignKey, Index, Integer, String, UniqueConstraint,
    Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Service(Base, TimestampMixin):
    """
    Service model.

    An offering with a name and a fixed duration. Read-only here.
    """

    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_ru: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name_en: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name_he: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)

    # Relationships
    slots: Mapped[List["Slot"]] = relationship("Slot", back_populates="service")

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name='{self.name}')>"


class Slot(Base):
    """
    Slot model.

    A fixed time window for one service holding at most one appointment.
    Times are naive UTC.
    """

    __tablename__ = "slots"
    __table_args__ = (
        Index("idx_slot_service_start", "service_id", "start_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False
    )
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    service: Mapped["Service"] = relationship("Service", back_populates="slots")
    appointment: Mapped[Optional["Appointment"]] = relationship(
        "Appointment",
        back_populates="slot",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Slot(id={self.id}, service_id={self.service_id}, start={self.start_at})>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    Binds one slot to the conversation that booked it. The unique constraint
    on slot_id is what admits exactly one winner when two conversations race
    for the same slot. Cancellation is a status change; rows are never deleted.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("slot_id", name="uq_appointment_slot"),
        Index("idx_appointment_chat_status", "chat_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("slots.id", ondelete="CASCADE"),
        nullable=False
    )
    service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False
    )
    chat_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=AppointmentStatus.CONFIRMED,
        nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    slot: Mapped["Slot"] = relationship("Slot", back_populates="appointment")
    service: Mapped["Service"] = relationship("Service")

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, slot_id={self.slot_id}, "
            f"chat_id='{self.chat_id}', status={self.status.value})>"
        )
