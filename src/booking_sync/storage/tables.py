"""ORM tables for mirrored bookings and sync cursors."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    calendar_id = Column(String(500), nullable=False)
    barber_id = Column(Integer, nullable=False)
    external_id = Column(String(1024), nullable=False)

    customer_name = Column(String(255), nullable=False)
    start = Column(DateTime(timezone=True), nullable=False)
    end = Column(DateTime(timezone=True), nullable=False)
    all_day = Column(Boolean, nullable=False, default=False)
    status = Column(String(32), nullable=False, default="confirmed")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Join key for reconciliation; duplicate creates must fail here
    __table_args__ = (
        UniqueConstraint("calendar_id", "external_id", name="uq_bookings_calendar_external"),
        Index("ix_bookings_calendar_external", "calendar_id", "external_id"),
    )


class SyncCursorRow(Base):
    __tablename__ = "sync_cursors"

    calendar_id = Column(String(500), primary_key=True)
    token = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
