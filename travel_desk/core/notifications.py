"""
Participant notifications for assignments.

Delivery goes through a `NotificationSink`. Sending is best effort: a missing
address or a failing transport is logged and the caller carries on.
"""
import logging
import smtplib
import uuid
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Iterable, Protocol

from travel_desk.core.config import settings
from travel_desk.models.assignment import Assignment
from travel_desk.models.user import User

logger = logging.getLogger(__name__)

ASSIGNMENT_CREATED = "assignment_created"
ASSIGNMENT_UPDATED = "assignment_updated"

SUBJECTS = {
    ASSIGNMENT_CREATED: "New travel assignment - {destination}",
    ASSIGNMENT_UPDATED: "Updated travel assignment - {destination}",
}

BODY = """Hello {recipient_name},

You have been assigned to the following travel assignment.

Purpose:     {purpose}
Destination: {destination}
Dates:       {start_date} to {end_date}
Assigned by: {creator_name}

Please file your travel report once the trip is complete.
"""


class NotificationSink(Protocol):
    def send(self, to_email: str, template: str, payload: dict[str, Any]) -> None: ...


def render(template: str, payload: dict[str, Any]) -> tuple[str, str]:
    subject = SUBJECTS[template].format(**payload)
    return subject, BODY.format(**payload)


class LoggingNotificationSink:
    """Default sink for local/dev: writes the rendered mail to the log."""

    def send(self, to_email: str, template: str, payload: dict[str, Any]) -> None:
        subject, _ = render(template, payload)
        logger.info("Notification to %s: %s", to_email, subject)


class SmtpNotificationSink:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def send(self, to_email: str, template: str, payload: dict[str, Any]) -> None:
        subject, body = render(template, payload)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email
        msg.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)


def get_notification_sink() -> NotificationSink:
    if settings.MAIL_BACKEND == "smtp":
        return SmtpNotificationSink(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.MAIL_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        )
    return LoggingNotificationSink()


@dataclass
class DispatchResult:
    sent: list[uuid.UUID] = field(default_factory=list)
    skipped: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)


def assignment_payload(assignment: Assignment, recipient: User) -> dict[str, Any]:
    creator = assignment.creator
    return {
        "assignment_id": str(assignment.id),
        "recipient_name": recipient.full_name,
        "purpose": assignment.purpose,
        "destination": assignment.destination,
        "start_date": assignment.start_date.isoformat(),
        "end_date": assignment.end_date.isoformat(),
        "creator_name": creator.full_name if creator else "-",
    }


def notify_participants(
    sink: NotificationSink,
    assignment: Assignment,
    recipients: Iterable[User],
    *,
    template: str = ASSIGNMENT_CREATED,
) -> DispatchResult:
    result = DispatchResult()
    for user in recipients:
        if not user.email:
            logger.warning(
                "User does not have email address; skipping assignment notification",
                extra={"assignment_id": str(assignment.id), "user_id": str(user.id), "user_name": user.full_name},
            )
            result.skipped.append(user.id)
            continue

        try:
            sink.send(user.email, template, assignment_payload(assignment, user))
        except Exception:
            logger.exception(
                "Failed to send assignment notification",
                extra={"assignment_id": str(assignment.id), "user_id": str(user.id)},
            )
            result.failed.append(user.id)
            continue
        result.sent.append(user.id)
    return result
