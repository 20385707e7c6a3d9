"""HTML bodies for appointment emails."""

from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from portfolio_backend.models.appointment import Appointment
from portfolio_backend.scheduling.clock import from_storage


def format_when(appointment: Appointment) -> str:
    try:
        zone = ZoneInfo(appointment.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo('UTC')
    local = from_storage(appointment.start_time).astimezone(zone)
    hour = local.strftime('%I').lstrip('0')
    return f"{local:%A, %B} {local.day}, {local:%Y} at {hour}:{local:%M %p}"


def duration_minutes(appointment: Appointment) -> int:
    return round((appointment.end_time - appointment.start_time).total_seconds() / 60)


def booking_request_template(appointment: Appointment) -> tuple[str, str]:
    subject = f"New Appointment Request: {appointment.topic}"
    details = (
        f"<p><strong>Details:</strong> {escape(appointment.details)}</p>"
        if appointment.details
        else ""
    )
    body = f"""
      <h2>New Appointment Request</h2>
      <p><strong>Name:</strong> {escape(appointment.name)}</p>
      <p><strong>Email:</strong> {escape(appointment.email)}</p>
      <p><strong>Topic:</strong> {escape(appointment.topic)}</p>
      {details}
      <p><strong>Requested Time:</strong> {format_when(appointment)}</p>
      <p><strong>Duration:</strong> {duration_minutes(appointment)} minutes</p>
      <p><strong>Timezone:</strong> {escape(appointment.timezone)}</p>
      <hr>
      <p><em>This is a pending appointment request. Please confirm or reject it from your dashboard.</em></p>
    """
    return subject, body


def booking_received_template(appointment: Appointment, operator_name: str) -> tuple[str, str]:
    subject = f"Appointment Request Received - {appointment.topic}"
    body = f"""
      <h2>Thank you for your appointment request!</h2>
      <p>Hi {escape(appointment.name)},</p>
      <p>I've received your appointment request for:</p>
      <p><strong>Topic:</strong> {escape(appointment.topic)}</p>
      <p><strong>Requested Time:</strong> {format_when(appointment)}</p>
      <p><strong>Duration:</strong> {duration_minutes(appointment)} minutes</p>
      <p>I'll review your request and get back to you soon to confirm the appointment.</p>
      <p>Best regards,<br>{escape(operator_name)}</p>
    """
    return subject, body


def booking_confirmed_template(appointment: Appointment, operator_name: str) -> tuple[str, str]:
    subject = f"Appointment Confirmed - {appointment.topic}"
    body = f"""
      <h2>Your appointment is confirmed</h2>
      <p>Hi {escape(appointment.name)},</p>
      <p><strong>Topic:</strong> {escape(appointment.topic)}</p>
      <p><strong>Time:</strong> {format_when(appointment)}</p>
      <p><strong>Duration:</strong> {duration_minutes(appointment)} minutes</p>
      <p>Looking forward to speaking with you.</p>
      <p>Best regards,<br>{escape(operator_name)}</p>
    """
    return subject, body
