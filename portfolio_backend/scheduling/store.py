"""SQLAlchemy-backed persistence for appointments and the availability policy."""

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portfolio_backend.core.errors import ConflictError, DayCapacityError, ServiceError, ServiceUnavailableError
from portfolio_backend.models.appointment import ACTIVE_STATUSES, APPOINTMENT_STATUSES, Appointment, utcnow
from portfolio_backend.models.availability import SETTINGS_ROW_ID, AvailabilitySettings
from portfolio_backend.scheduling.clock import to_storage
from portfolio_backend.scheduling.policy import AvailabilityPolicy, default_policy

logger = logging.getLogger(__name__)


class BookingStore:
    """Appointment queries and writes over one session.

    Datetime arguments are aware instants; they are converted to the stored
    naive-UTC form here.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_overlapping(
        self,
        start_time: datetime,
        end_time: datetime,
        statuses: tuple[str, ...] = ACTIVE_STATUSES,
    ) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.status.in_(statuses),
            Appointment.start_time < to_storage(end_time),
            Appointment.end_time > to_storage(start_time),
        ).first()

    def count_by_day(
        self,
        day_start: datetime,
        day_end: datetime,
        statuses: tuple[str, ...] = ACTIVE_STATUSES,
    ) -> int:
        return self.db.query(func.count(Appointment.id)).filter(
            Appointment.status.in_(statuses),
            Appointment.start_time >= to_storage(day_start),
            Appointment.start_time < to_storage(day_end),
        ).scalar() or 0

    def booked_starts(self, day_start: datetime, day_end: datetime) -> list[datetime]:
        rows = self.db.query(Appointment.start_time).filter(
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_time >= to_storage(day_start),
            Appointment.start_time < to_storage(day_end),
        ).order_by(Appointment.start_time.asc()).all()
        return [start_time for (start_time,) in rows]

    def insert(
        self,
        appointment: Appointment,
        *,
        day_start: datetime | None = None,
        day_end: datetime | None = None,
        max_per_day: int | None = None,
    ) -> Appointment:
        """Insert ``appointment`` in one transaction serialized on the settings row.

        The transaction opens with a write to the settings row, which takes the
        row lock on PostgreSQL and the database write lock on SQLite, so overlap
        and day capacity are re-checked against every earlier commit. The partial
        unique index on active start times backs this up.
        """
        try:
            self.db.query(AvailabilitySettings).filter(
                AvailabilitySettings.id == SETTINGS_ROW_ID,
            ).update({AvailabilitySettings.updated_at: utcnow()}, synchronize_session=False)

            overlapping = self.db.query(Appointment.id).filter(
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.start_time < appointment.end_time,
                Appointment.end_time > appointment.start_time,
            ).first()
            if overlapping is not None:
                raise ConflictError('Overlapping appointment exists.')

            if max_per_day is not None and self.count_by_day(day_start, day_end) >= max_per_day:
                raise DayCapacityError()

            self.db.add(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning('Insert rejected by storage constraint for start %s', appointment.start_time)
            raise ConflictError('Active appointment already holds this start time.') from exc
        except ServiceError:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        return appointment

    def find_by_id(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def update_status(self, appointment: Appointment, changes: dict) -> Appointment:
        for field_name, value in changes.items():
            setattr(appointment, field_name, value)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError('Active appointment already holds this start time.') from exc
        self.db.refresh(appointment)
        return appointment

    def delete_by_id(self, appointment_id: int) -> bool:
        appointment = self.find_by_id(appointment_id)
        if appointment is None:
            return False
        self.db.delete(appointment)
        self.db.commit()
        return True

    def list_appointments(self, status: str | None, page: int, limit: int) -> tuple[list[Appointment], int]:
        query = self.db.query(Appointment)
        if status:
            query = query.filter(Appointment.status == status)

        total = query.count()
        appointments = query.order_by(
            Appointment.created_at.desc(),
            Appointment.id.desc(),
        ).offset((page - 1) * limit).limit(limit).all()
        return appointments, total

    def count_by_status(self) -> dict[str, int]:
        rows = self.db.query(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status).all()
        counts = {status_name: 0 for status_name in APPOINTMENT_STATUSES}
        for status_name, count in rows:
            if status_name in counts:
                counts[status_name] = count
        counts['total'] = sum(count for count in counts.values())
        return counts


def _policy_from_row(row: AvailabilitySettings) -> AvailabilityPolicy:
    return AvailabilityPolicy(
        weekly_schedule=row.weekly_schedule,
        blackout_dates=row.blackout_dates or [],
        slot_duration=row.slot_duration,
        buffer_between_slots=row.buffer_between_slots,
        min_lead_time=row.min_lead_time,
        max_advance_booking=row.max_advance_booking,
        max_appointments_per_day=row.max_appointments_per_day,
        timezone=row.timezone,
    )


def _apply_policy(row: AvailabilitySettings, policy: AvailabilityPolicy) -> None:
    data = policy.model_dump(mode='json')
    row.weekly_schedule = data['weekly_schedule']
    row.blackout_dates = data['blackout_dates']
    row.slot_duration = policy.slot_duration
    row.buffer_between_slots = policy.buffer_between_slots
    row.min_lead_time = policy.min_lead_time
    row.max_advance_booking = policy.max_advance_booking
    row.max_appointments_per_day = policy.max_appointments_per_day
    row.timezone = policy.timezone


def ensure_availability_settings(db: Session) -> AvailabilityPolicy:
    """Create the settings row with the default policy unless it already exists."""
    row = db.query(AvailabilitySettings).filter(AvailabilitySettings.id == SETTINGS_ROW_ID).first()
    if row is not None:
        return _policy_from_row(row)

    policy = default_policy()
    row = AvailabilitySettings(id=SETTINGS_ROW_ID)
    _apply_policy(row, policy)
    db.add(row)
    try:
        db.commit()
        logger.info('Created default availability settings.')
    except IntegrityError:
        # Another process created the row first.
        db.rollback()
        return load_policy(db)
    return policy


def load_policy(db: Session) -> AvailabilityPolicy:
    row = db.query(AvailabilitySettings).filter(AvailabilitySettings.id == SETTINGS_ROW_ID).first()
    if row is None:
        raise ServiceUnavailableError('Availability settings have not been initialized.')
    return _policy_from_row(row)


def save_policy(db: Session, policy: AvailabilityPolicy) -> AvailabilityPolicy:
    row = db.query(AvailabilitySettings).filter(
        AvailabilitySettings.id == SETTINGS_ROW_ID,
    ).with_for_update().first()
    if row is None:
        raise ServiceUnavailableError('Availability settings have not been initialized.')
    _apply_policy(row, policy)
    db.commit()
    return policy
