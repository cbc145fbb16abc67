from __future__ import annotations

from datetime import datetime

from circulation.models.borrowal import Borrowal
from circulation.extensions import db


class BorrowRepo:
    @staticmethod
    def get(borrowal_id: int):
        return db.session.get(Borrowal, borrowal_id)

    @staticmethod
    def add(borrowal: Borrowal):
        db.session.add(borrowal)
        db.session.flush()
        return borrowal

    @staticmethod
    def find_open(book_id: int, user_id: int):
        return Borrowal.query.filter(
            Borrowal.book_id == book_id,
            Borrowal.user_id == user_id,
            Borrowal.returned_at.is_(None),
        ).first()

    @staticmethod
    def list(user_id: int | None = None, open_only: bool = False):
        q = Borrowal.query
        if user_id is not None:
            q = q.filter(Borrowal.user_id == user_id)
        if open_only:
            q = q.filter(Borrowal.returned_at.is_(None))
        return q.order_by(Borrowal.id.desc()).all()

    @staticmethod
    def count_open_for_book(book_id: int) -> int:
        return Borrowal.query.filter(
            Borrowal.book_id == book_id, Borrowal.returned_at.is_(None)
        ).count()

    @staticmethod
    def close(borrowal: Borrowal, returned_at: datetime) -> bool:
        """Sets returned_at only if the loan is still open."""
        rows = (
            Borrowal.query
            .filter(Borrowal.id == borrowal.id, Borrowal.returned_at.is_(None))
            .update({"returned_at": returned_at, "status": Borrowal.RETURNED}, synchronize_session=False)
        )
        db.session.refresh(borrowal)
        return rows == 1

    @staticmethod
    def find_overdue(now: datetime):
        return Borrowal.query.filter(
            Borrowal.returned_at.is_(None),
            Borrowal.due_date < now
        ).all()

    @staticmethod
    def find_due_soon(now: datetime, until: datetime):
        return Borrowal.query.filter(
            Borrowal.returned_at.is_(None),
            Borrowal.due_date >= now,
            Borrowal.due_date <= until
        ).all()
