# circulation/services/mail_service.py
from __future__ import annotations

from flask import current_app
from flask_mail import Message

from circulation.extensions import db, mail
from circulation.models.notification import Notification
from circulation.repositories.user_repo import UserRepo

SUBJECTS = {
    "appointment_created": "Library: pickup appointment booked",
    "appointment_confirmed": "Library: pickup confirmed",
    "appointment_cancelled": "Library: appointment cancelled",
    "appointment_expired": "Library: appointment expired",
    "reservation_created": "Library: you joined the queue",
    "reservation_ready": "Library: your reserved book is ready",
    "reservation_expired": "Library: reservation expired",
    "renewal_approved": "Library: renewal approved",
    "renewal_rejected": "Library: renewal rejected",
    "book_returned": "Library: book returned",
    "overdue": "Library: overdue book",
    "due_soon": "Library: due date is near",
}


class MailService:
    @staticmethod
    def send_email(to_email: str, subject: str, body: str) -> tuple[bool, str | None]:
        """
        return: (success, error_text)
        """
        try:
            msg = Message(subject=subject, recipients=[to_email], body=body)
            mail.send(msg)
            return True, None
        except Exception as e:
            current_app.logger.warning(f"[MailService] mail not sent to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def deliver_event(sender, user_id=None, kind=None, message=None, payload=None, notification_id=None, **_):
        """
        circulation_event subscriber. Mails the event text to the reader and
        records the outcome on the notification row.
        """
        if not current_app.config.get("NOTIFY_BY_MAIL"):
            return

        user = UserRepo.get_by_id(user_id) if user_id else None
        to_email = getattr(user, "email", None)
        row = db.session.get(Notification, notification_id) if notification_id else None

        if not to_email:
            ok, err = False, "missing_email"
        else:
            username = getattr(user, "username", "reader")
            subject = SUBJECTS.get(kind, "Library notification")
            body = f"Hello {username},\n\n{message}\n"
            ok, err = MailService.send_email(to_email, subject, body)

        if row is not None:
            row.mailed = ok
            row.mail_error = err
            db.session.commit()
        return ok
