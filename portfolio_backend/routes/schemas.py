from datetime import date, datetime, timezone

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(ApiModel):
    message: str


class BookedSlotsResponse(ApiModel):
    booked_slots: list[str]


class OpenSlotsResponse(ApiModel):
    date: date
    slots: list[str]


class AvailableDatesResponse(ApiModel):
    dates: list[date]


class AppointmentCreatedResponse(ApiModel):
    message: str
    appointment_id: int


class AppointmentUpdateRequest(ApiModel):
    status: str | None = None
    admin_notes: str | None = None


class AppointmentResponse(ApiModel):
    id: int
    name: str
    email: str
    topic: str
    details: str | None = None
    start_time: datetime
    end_time: datetime
    timezone: str
    status: str
    ip_address: str | None = None
    user_agent: str | None = None
    admin_notes: str | None = None
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator(
        'start_time',
        'end_time',
        'confirmed_at',
        'rejected_at',
        'cancelled_at',
        'created_at',
        'updated_at',
    )
    @classmethod
    def mark_utc(cls, value: datetime | None) -> datetime | None:
        # stored values are naive UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PaginationResponse(ApiModel):
    page: int
    limit: int
    total: int
    pages: int


class StatusCountsResponse(ApiModel):
    pending: int
    confirmed: int
    rejected: int
    cancelled: int
    total: int


class AppointmentListResponse(ApiModel):
    appointments: list[AppointmentResponse]
    pagination: PaginationResponse
    counts: StatusCountsResponse


class TokenRefreshRequest(ApiModel):
    refresh_token: str | None = None


class TokenResponse(ApiModel):
    message: str
    access_token: str
    refresh_token: str
