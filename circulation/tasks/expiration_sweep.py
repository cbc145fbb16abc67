# circulation/tasks/expiration_sweep.py
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from circulation.errors import AlreadyProcessed
from circulation.repositories.appointment_repo import AppointmentRepo
from circulation.repositories.reservation_repo import ReservationRepo
from circulation.services.appointment_service import AppointmentService
from circulation.services.reservation_service import ReservationService
from circulation.utils import clock
from circulation.utils.tx import run_in_transaction


def run_sweep(now: datetime | None = None) -> dict:
    """
    Expires pending appointments past their pickup grace period and ready
    reservations past their hold window, handing each held copy on.

    Each record is expired in its own transaction. A record a librarian or
    reader already moved (confirm/cancel won the race) raises
    AlreadyProcessed; that is expected here, so it is logged and skipped.
    Any other error on one record is logged and counted in `failed`; the
    rest of the sweep still runs and the record is retried next time.
    Running the sweep twice is a no-op the second time.
    """
    now = now or clock.utcnow()
    log = current_app.logger
    grace_hours = current_app.config.get("APPOINTMENT_GRACE_HOURS", 2)

    cutoff = now - timedelta(hours=grace_hours)

    expired_appointments = []
    expired_reservations = []
    skipped = 0
    failed = 0

    for appt_id in [a.id for a in AppointmentRepo.find_past_grace(cutoff)]:
        try:
            run_in_transaction(AppointmentService.expire_if_due, appt_id, now)
            expired_appointments.append(appt_id)
        except AlreadyProcessed as e:
            skipped += 1
            log.info(f"[sweeper] appointment #{appt_id} skipped: {e}")
        except Exception as e:
            failed += 1
            log.exception(f"[sweeper] appointment #{appt_id} failed: {e}")

    for res_id in [r.id for r in ReservationRepo.find_stale_ready(now)]:
        try:
            run_in_transaction(ReservationService.expire_if_stale, res_id, now)
            expired_reservations.append(res_id)
        except AlreadyProcessed as e:
            skipped += 1
            log.info(f"[sweeper] reservation #{res_id} skipped: {e}")
        except Exception as e:
            failed += 1
            log.exception(f"[sweeper] reservation #{res_id} failed: {e}")

    log.info(
        f"[sweeper] expired_appointments={len(expired_appointments)} "
        f"expired_reservations={len(expired_reservations)} skipped={skipped} failed={failed}"
    )
    return {
        "expired_appointments": expired_appointments,
        "expired_reservations": expired_reservations,
        "skipped": skipped,
        "failed": failed,
    }


def run_sweep_job(app):
    with app.app_context():
        try:
            run_sweep()
        except Exception as e:
            current_app.logger.exception(f"[sweeper] sweep failed: {e}")
