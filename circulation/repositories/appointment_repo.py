from __future__ import annotations

from datetime import datetime

from circulation.models.appointment import Appointment
from circulation.extensions import db
from circulation.utils.tx import conditional_update


class AppointmentRepo:
    @staticmethod
    def get(appointment_id: int):
        return db.session.get(Appointment, appointment_id)

    @staticmethod
    def add(appointment: Appointment):
        db.session.add(appointment)
        db.session.flush()
        return appointment

    @staticmethod
    def find_pending(book_id: int, user_id: int):
        return Appointment.query.filter_by(
            book_id=book_id, user_id=user_id, status=Appointment.PENDING
        ).first()

    @staticmethod
    def list(user_id: int | None = None, status: str | None = None):
        q = Appointment.query
        if user_id is not None:
            q = q.filter(Appointment.user_id == user_id)
        if status:
            q = q.filter(Appointment.status == status)
        return q.order_by(Appointment.pickup_time.asc(), Appointment.id.asc()).all()

    @staticmethod
    def find_past_grace(cutoff: datetime):
        """Pending appointments whose pickup_time is before cutoff (now - grace)."""
        return (
            Appointment.query
            .filter(Appointment.status == Appointment.PENDING, Appointment.pickup_time < cutoff)
            .order_by(Appointment.pickup_time.asc())
            .all()
        )

    @staticmethod
    def count_pending_for_book(book_id: int) -> int:
        return Appointment.query.filter_by(book_id=book_id, status=Appointment.PENDING).count()

    @staticmethod
    def transition(appointment: Appointment, from_status: str, **values) -> bool:
        return conditional_update(Appointment, appointment, from_status, **values)
