# circulation/utils/tx.py
"""
Transaction helpers.

Every state-changing service call runs through run_in_transaction(): the
work function mutates db.session, then a single commit makes it durable.
Write conflicts (locked row/database, stale version) roll back and retry a
bounded number of times; business errors roll back and propagate.
Notification events queued during the work are published only after the
commit succeeds and are dropped on rollback.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from circulation.extensions import db
from circulation.errors import CirculationError

RETRYABLE = (OperationalError, StaleDataError)


def run_in_transaction(work, *args, retries: int | None = None, **kwargs):
    from circulation.services.notification_service import NotificationService

    attempts = retries or current_app.config.get("TX_MAX_RETRIES", 3)
    for attempt in range(1, attempts + 1):
        try:
            result = work(*args, **kwargs)
            db.session.commit()
        except CirculationError:
            db.session.rollback()
            NotificationService.discard_pending()
            raise
        except RETRYABLE as e:
            db.session.rollback()
            NotificationService.discard_pending()
            if attempt >= attempts:
                current_app.logger.error(
                    f"[tx] {work.__name__} gave up after {attempt} attempts: {e}"
                )
                raise
            current_app.logger.warning(
                f"[tx] {work.__name__} write conflict, retry {attempt}/{attempts - 1}: {e}"
            )
            continue
        except Exception:
            db.session.rollback()
            NotificationService.discard_pending()
            raise

        NotificationService.publish_pending()
        return result


def conditional_update(model, obj, expected_status: str, **values) -> bool:
    """
    UPDATE <model> SET ... WHERE id = obj.id AND status = expected_status.

    Returns False when another actor already moved the record out of
    expected_status. On success the instance is refreshed from the row.
    """
    rows = (
        model.query
        .filter(model.id == obj.id, model.status == expected_status)
        .update(values, synchronize_session=False)
    )
    db.session.refresh(obj)
    return rows == 1
