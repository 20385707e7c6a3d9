"""Availability settings model definitions."""

from sqlalchemy import JSON, Column, DateTime, Integer, String

from portfolio_backend.database import Base
from portfolio_backend.models.appointment import utcnow

SETTINGS_ROW_ID = 1


class AvailabilitySettings(Base):
    """The operator's booking policy. Exactly one row, keyed by ``SETTINGS_ROW_ID``."""
    __tablename__ = "availability_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    weekly_schedule = Column(JSON, nullable=False)
    blackout_dates = Column(JSON, nullable=False, default=list)
    slot_duration = Column(Integer, nullable=False)
    buffer_between_slots = Column(Integer, nullable=False)
    min_lead_time = Column(Integer, nullable=False)
    max_advance_booking = Column(Integer, nullable=False)
    max_appointments_per_day = Column(Integer, nullable=False)
    timezone = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
