from __future__ import annotations

from datetime import datetime

from circulation.models.reservation import Reservation
from circulation.extensions import db
from circulation.utils.tx import conditional_update


class ReservationRepo:
    @staticmethod
    def get(reservation_id: int):
        return db.session.get(Reservation, reservation_id)

    @staticmethod
    def add(reservation: Reservation):
        db.session.add(reservation)
        db.session.flush()
        return reservation

    @staticmethod
    def find_open(book_id: int, user_id: int):
        return Reservation.query.filter(
            Reservation.book_id == book_id,
            Reservation.user_id == user_id,
            Reservation.status.in_(Reservation.OPEN),
        ).first()

    @staticmethod
    def active_queue(book_id: int):
        """FIFO: position first, creation order (id) breaks ties."""
        return (
            Reservation.query
            .filter(Reservation.book_id == book_id, Reservation.status == Reservation.ACTIVE)
            .order_by(Reservation.position.asc(), Reservation.id.asc())
            .all()
        )

    @staticmethod
    def count_active(book_id: int) -> int:
        return Reservation.query.filter_by(book_id=book_id, status=Reservation.ACTIVE).count()

    @staticmethod
    def count_ready(book_id: int) -> int:
        return Reservation.query.filter_by(book_id=book_id, status=Reservation.READY).count()

    @staticmethod
    def find_stale_ready(now: datetime):
        return (
            Reservation.query
            .filter(Reservation.status == Reservation.READY, Reservation.expires_at < now)
            .order_by(Reservation.expires_at.asc())
            .all()
        )

    @staticmethod
    def list(user_id: int | None = None, status: str | None = None):
        q = Reservation.query
        if user_id is not None:
            q = q.filter(Reservation.user_id == user_id)
        if status:
            q = q.filter(Reservation.status == status)
        return q.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()

    @staticmethod
    def transition(reservation: Reservation, from_status: str, **values) -> bool:
        return conditional_update(Reservation, reservation, from_status, **values)
