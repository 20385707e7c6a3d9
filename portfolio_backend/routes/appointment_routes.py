import logging
import math
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio_backend.auth.dependencies import require_operator
from portfolio_backend.core.errors import InvalidInputError, ServiceUnavailableError
from portfolio_backend.database import get_db
from portfolio_backend.models.appointment import APPOINTMENT_STATUSES
from portfolio_backend.notifications.email_service import (
    BackgroundNotificationSink,
    NotificationSink,
    get_notification_sink,
)
from portfolio_backend.routes.schemas import (
    AppointmentCreatedResponse,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdateRequest,
    MessageResponse,
    PaginationResponse,
    StatusCountsResponse,
)
from portfolio_backend.scheduling.admission import ClientInfo, submit
from portfolio_backend.scheduling.clock import Clock, get_clock
from portfolio_backend.scheduling.lifecycle import delete_appointment, get_appointment, update_appointment
from portfolio_backend.scheduling.store import BookingStore, load_policy

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def get_client_info(request: Request) -> ClientInfo:
    forwarded = request.headers.get('x-forwarded-for', '')
    ip_address = forwarded.split(',')[0].strip() or request.headers.get('x-real-ip', '').strip()
    if not ip_address and request.client is not None:
        ip_address = request.client.host
    return ClientInfo(
        ip_address=ip_address or 'unknown',
        user_agent=request.headers.get('user-agent', ''),
    )


@router.post('/appointments', response_model=AppointmentCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    background_tasks: BackgroundTasks,
    payload: dict[str, Any] = Body(...),
    client: ClientInfo = Depends(get_client_info),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sink: NotificationSink = Depends(get_notification_sink),
):
    try:
        policy = load_policy(db)
        appointment = submit(
            payload,
            policy,
            clock(),
            BookingStore(db),
            notifier=BackgroundNotificationSink(background_tasks, sink),
            client=client,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Appointment creation failed.')
        raise ServiceUnavailableError() from exc

    return AppointmentCreatedResponse(
        message='Appointment request submitted successfully',
        appointment_id=appointment.id,
    )


@router.get(
    '/appointments',
    response_model=AppointmentListResponse,
    dependencies=[Depends(require_operator)],
)
def list_appointments(
    status_filter: str | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    if status_filter and status_filter not in APPOINTMENT_STATUSES:
        raise InvalidInputError('Invalid status. Must be one of: ' + ', '.join(APPOINTMENT_STATUSES))

    try:
        store = BookingStore(db)
        appointments, total = store.list_appointments(status_filter or None, page, limit)
        counts = store.count_by_status()
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc

    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
        pagination=PaginationResponse(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
        counts=StatusCountsResponse(**counts),
    )


@router.get(
    '/appointments/{appointment_id}',
    response_model=AppointmentResponse,
    dependencies=[Depends(require_operator)],
)
def read_appointment(appointment_id: int, db: Session = Depends(get_db)):
    try:
        return get_appointment(BookingStore(db), appointment_id)
    except SQLAlchemyError as exc:
        raise ServiceUnavailableError() from exc


@router.put(
    '/appointments/{appointment_id}',
    response_model=AppointmentResponse,
    dependencies=[Depends(require_operator)],
)
def update_appointment_status(
    appointment_id: int,
    data: AppointmentUpdateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sink: NotificationSink = Depends(get_notification_sink),
):
    try:
        return update_appointment(
            BookingStore(db),
            appointment_id,
            clock(),
            status=data.status,
            admin_notes=data.admin_notes,
            notifier=BackgroundNotificationSink(background_tasks, sink),
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise ServiceUnavailableError() from exc


@router.delete(
    '/appointments/{appointment_id}',
    response_model=MessageResponse,
    dependencies=[Depends(require_operator)],
)
def remove_appointment(appointment_id: int, db: Session = Depends(get_db)):
    try:
        delete_appointment(BookingStore(db), appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ServiceUnavailableError() from exc

    return MessageResponse(message='Appointment deleted successfully')
