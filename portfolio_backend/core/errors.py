"""Error taxonomy shared by the scheduling engine and the HTTP layer.

Every error carries the HTTP status it maps to and a caller-safe message.
Route handlers never build error responses themselves; ``main`` registers a
single handler for :class:`ServiceError`.
"""

from fastapi import status


class ServiceError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request failed.'

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    default_message = 'Invalid request'


class DateNotAvailableError(ServiceError):
    default_message = 'Selected date is not available for booking'


class SlotNotAvailableError(ServiceError):
    default_message = 'Selected time slot is not available'


class SlotConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'This time slot is already booked. Please select another time.'


class DayCapacityError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Maximum appointments reached for this day. Please select another date.'


class InvalidTransitionError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Invalid status transition.'


class AuthenticationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Unauthorized'


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found'


class ServiceUnavailableError(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class ConflictError(ServiceError):
    """Raised by the booking store when a storage constraint rejects an insert."""

    status_code = status.HTTP_409_CONFLICT
    default_message = 'Storage constraint violated.'


def validation_message(exc) -> str:
    """Return a caller-facing message for the first error of a pydantic or FastAPI validation error."""
    error = exc.errors()[0]
    if error.get('type') == 'value_error' and 'ctx' in error:
        return str(error['ctx']['error'])
    if error.get('type') == 'missing':
        return 'All required fields must be provided'
    field_name = '.'.join(str(part) for part in error.get('loc', ()) if part != 'body')
    return f'{field_name}: {error.get("msg", "invalid value")}'
