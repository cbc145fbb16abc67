# circulation/services/notification_service.py
"""
Outbound circulation events.

Services queue events while their transaction is open; run_in_transaction()
publishes them after commit (or drops them on rollback). Publishing stores a
Notification row (the reader's inbox) and sends the circulation_event signal,
which delivery components (mail, UI push) subscribe to.
"""
from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from flask import current_app

from circulation.extensions import db
from circulation.models.notification import Notification
from circulation.repositories.notification_repo import NotificationRepo
from circulation.signals import circulation_event

_PENDING_KEY = "circulation_pending_events"


def _jsonable(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class NotificationService:
    @staticmethod
    def queue(user_id: int, kind: str, message: str, borrowal_id: int | None = None, **payload):
        events = db.session.info.setdefault(_PENDING_KEY, [])
        events.append({
            "user_id": user_id,
            "kind": kind,
            "message": message,
            "borrowal_id": borrowal_id,
            "payload": {k: _jsonable(v) for k, v in payload.items()},
        })

    @staticmethod
    def discard_pending():
        db.session.info.pop(_PENDING_KEY, None)

    @staticmethod
    def publish_pending() -> list[Notification]:
        events = db.session.info.pop(_PENDING_KEY, None) or []
        if not events:
            return []

        rows = []
        try:
            for ev in events:
                rows.append(NotificationRepo.add(Notification(
                    user_id=ev["user_id"],
                    kind=ev["kind"],
                    message=ev["message"],
                    payload=ev["payload"],
                    borrowal_id=ev["borrowal_id"],
                )))
            db.session.commit()
        except Exception as e:
            # the circulation change is already committed; losing the inbox row must not undo it
            db.session.rollback()
            current_app.logger.exception(f"[notifications] could not store {len(events)} event(s): {e}")
            return []

        for row in rows:
            try:
                circulation_event.send(
                    current_app._get_current_object(),
                    user_id=row.user_id,
                    kind=row.kind,
                    message=row.message,
                    payload=row.payload,
                    notification_id=row.id,
                )
            except Exception as e:
                current_app.logger.exception(f"[notifications] subscriber failed for #{row.id}: {e}")
        return rows

    @staticmethod
    def list_for_user(user_id: int, unread_only: bool = False):
        return NotificationRepo.list_for_user(user_id, unread_only=unread_only)

    @staticmethod
    def mark_all_read(user_id: int) -> int:
        return NotificationRepo.mark_all_read(user_id)
