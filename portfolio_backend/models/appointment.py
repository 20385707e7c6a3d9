"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, text

from portfolio_backend.database import Base

ACTIVE_STATUSES = ('pending', 'confirmed')
APPOINTMENT_STATUSES = ('pending', 'confirmed', 'rejected', 'cancelled')


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Appointment(Base):
    """A booking request and its review state.

    All datetimes are naive UTC.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_time_range', 'start_time', 'end_time'),
        Index('idx_appointments_status_created', 'status', 'created_at'),
        Index('idx_appointments_start_status', 'start_time', 'status'),
        Index(
            'uq_appointments_active_start',
            'start_time',
            unique=True,
            sqlite_where=text("status IN ('pending', 'confirmed')"),
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False, index=True)
    topic = Column(String(200), nullable=False)
    details = Column(Text, default='')
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    timezone = Column(String, nullable=False)
    status = Column(String, nullable=False, default='pending')
    ip_address = Column(String, default='')
    user_agent = Column(String, default='')
    admin_notes = Column(Text, default='')
    confirmed_at = Column(DateTime)
    rejected_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
