"""Best-effort appointment email delivery over SMTP."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from portfolio_backend.core import config
from portfolio_backend.models.appointment import Appointment
from portfolio_backend.notifications.templates import (
    booking_confirmed_template,
    booking_received_template,
    booking_request_template,
)

logger = logging.getLogger(__name__)


class NotificationSink:
    """Receives appointment events. The base class drops them."""

    def send_booking_request(self, appointment: Appointment) -> None:
        pass

    def send_booking_received(self, appointment: Appointment) -> None:
        pass

    def send_booking_confirmed(self, appointment: Appointment) -> None:
        pass


class SmtpNotificationSink(NotificationSink):
    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USERNAME,
        password: str = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        from_address: str = config.EMAIL_FROM_ADDRESS,
        operator_email: str = config.OPERATOR_EMAIL,
        operator_name: str = config.OPERATOR_NAME,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.operator_email = operator_email
        self.operator_name = operator_name

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_address)

    def send_booking_request(self, appointment: Appointment) -> None:
        subject, body = booking_request_template(appointment)
        self.send(self.operator_email, subject, body)

    def send_booking_received(self, appointment: Appointment) -> None:
        subject, body = booking_received_template(appointment, self.operator_name)
        self.send(appointment.email, subject, body)

    def send_booking_confirmed(self, appointment: Appointment) -> None:
        subject, body = booking_confirmed_template(appointment, self.operator_name)
        self.send(appointment.email, subject, body)

    def send(self, to: str, subject: str, html_content: str) -> None:
        if not self.configured or not to:
            logger.info('SMTP not configured; skipping email "%s"', subject)
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(html_content, "html"))

        if self.port == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=30)
            if self.use_tls:
                context = ssl.create_default_context()
                server.starttls(context=context)

        try:
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_address.split("<")[-1].rstrip(">"), [to], msg.as_string())
            logger.info('Sent email "%s" to %s', subject, to)
        finally:
            server.quit()


def notify_safely(send, appointment: Appointment) -> bool:
    """Run one sink call; failures are logged and never propagate."""
    try:
        send(appointment)
    except Exception:
        logger.exception(
            'Failed to send %s for appointment %s',
            getattr(send, '__name__', 'notification'),
            appointment.id,
        )
        return False
    return True


def get_notification_sink() -> NotificationSink:
    return SmtpNotificationSink()


class BackgroundNotificationSink(NotificationSink):
    """Defers each send to run after the response, through FastAPI background tasks."""

    def __init__(self, background_tasks, sink: NotificationSink) -> None:
        self.background_tasks = background_tasks
        self.sink = sink

    def send_booking_request(self, appointment: Appointment) -> None:
        self.background_tasks.add_task(notify_safely, self.sink.send_booking_request, appointment)

    def send_booking_received(self, appointment: Appointment) -> None:
        self.background_tasks.add_task(notify_safely, self.sink.send_booking_received, appointment)

    def send_booking_confirmed(self, appointment: Appointment) -> None:
        self.background_tasks.add_task(notify_safely, self.sink.send_booking_confirmed, appointment)
