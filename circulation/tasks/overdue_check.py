# circulation/tasks/overdue_check.py
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from circulation.extensions import db
from circulation.repositories.borrow_repo import BorrowRepo
from circulation.repositories.notification_repo import NotificationRepo
from circulation.services.borrow_service import BorrowService
from circulation.services.notification_service import NotificationService
from circulation.utils import clock


def _title(b) -> str:
    return b.book.title if b.book else f"Book #{b.book_id}"


def run_overdue_check(now: datetime | None = None) -> dict:
    """
    Loan reminders.
    - overdue: due_date passed and not returned -> status overdue, one "overdue" notice per loan
    - due_soon: due within one day -> one "due_soon" notice per loan
    """
    now = now or clock.utcnow()
    due_soon_limit = now + timedelta(days=1)

    try:
        newly_overdue = BorrowService.mark_overdue(now)

        overdue_sent = 0
        for b in BorrowRepo.find_overdue(now):
            if NotificationRepo.already_sent(b.id, "overdue"):
                continue
            NotificationService.queue(
                b.user_id, "overdue",
                f'"{_title(b)}" was due on {b.due_date:%Y-%m-%d}. Please return it as soon as possible.',
                borrowal_id=b.id, book_title=_title(b), due_date=b.due_date,
            )
            overdue_sent += 1

        due_soon_sent = 0
        for b in BorrowRepo.find_due_soon(now, due_soon_limit):
            if NotificationRepo.already_sent(b.id, "due_soon"):
                continue
            NotificationService.queue(
                b.user_id, "due_soon",
                f'"{_title(b)}" is due on {b.due_date:%Y-%m-%d %H:%M} UTC.',
                borrowal_id=b.id, book_title=_title(b), due_date=b.due_date,
            )
            due_soon_sent += 1

        # single commit for the status changes, then the notices
        db.session.commit()
        NotificationService.publish_pending()
    except Exception:
        db.session.rollback()
        NotificationService.discard_pending()
        raise

    current_app.logger.info(
        f"[overdue_check] newly_overdue={len(newly_overdue)} "
        f"overdue_sent={overdue_sent} due_soon_sent={due_soon_sent}"
    )
    return {
        "newly_overdue": len(newly_overdue),
        "overdue_sent": overdue_sent,
        "due_soon_sent": due_soon_sent,
    }


def run_overdue_check_job(app):
    with app.app_context():
        try:
            run_overdue_check()
        except Exception as e:
            current_app.logger.exception(f"[overdue_check] failed: {e}")
