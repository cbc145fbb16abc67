from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from circulation.errors import (
    AlreadyBorrowed,
    AlreadyReturned,
    InvalidInput,
    LimitReached,
    NotFound,
)
from circulation.extensions import db
from circulation.models.borrowal import Borrowal
from circulation.models.penalty import Penalty
from circulation.repositories.book_repo import BookRepo
from circulation.repositories.borrow_repo import BorrowRepo
from circulation.repositories.user_repo import UserRepo
from circulation.services.inventory_service import InventoryService
from circulation.services.notification_service import NotificationService
from circulation.utils import clock
from circulation.utils.tx import run_in_transaction


class BorrowService:
    @staticmethod
    def get(borrowal_id: int) -> Borrowal:
        b = BorrowRepo.get(borrowal_id)
        if not b:
            raise NotFound("Borrowal not found")
        return b

    @staticmethod
    def list_borrowals(user_id: int | None = None, open_only: bool = False):
        return BorrowRepo.list(user_id=user_id, open_only=open_only)

    @staticmethod
    def open_borrowal(book_id: int, user_id: int, due_date: datetime, now: datetime) -> Borrowal:
        """
        Records a loan on a copy that is already taken out of `available`
        (held by an appointment / ready reservation, or just reserved by a
        direct borrow). Updates the reader and the popularity counter.
        Runs inside the caller's transaction.
        """
        user = UserRepo.get_by_id(user_id)
        if not user:
            raise NotFound("Reader not found")

        borrowal = BorrowRepo.add(Borrowal(
            user_id=user_id,
            book_id=book_id,
            borrowed_at=now,
            due_date=due_date,
            status=Borrowal.BORROWED,
        ))

        user.books_out = (user.books_out or 0) + 1
        if book_id not in user.borrowed_books:
            user.borrowed_books.append(book_id)
        BookRepo.count_borrow(book_id)
        return borrowal

    # --- direct borrow (librarian desk) -----------------------------------

    @staticmethod
    def create_direct_borrowal(book_id: int, user_id: int, due_date: datetime | None = None) -> Borrowal:
        return run_in_transaction(BorrowService._direct, book_id, user_id, due_date)

    @staticmethod
    def _direct(book_id: int, user_id: int, due_date: datetime | None) -> Borrowal:
        now = clock.utcnow()
        if due_date is None:
            due_date = now + timedelta(days=current_app.config.get("LOAN_DAYS", 14))
        elif due_date <= now:
            raise InvalidInput("Due date must be in the future")

        book = InventoryService.get_book(book_id)
        user = UserRepo.get_by_id(user_id)
        if not user:
            raise NotFound("Reader not found")

        if BorrowRepo.find_open(book_id, user_id):
            raise AlreadyBorrowed()

        limit = current_app.config.get("MAX_BOOKS_PER_USER", 5)
        if (user.books_out or 0) >= limit:
            raise LimitReached(f"This reader already has {limit} books out")

        InventoryService.reserve_copy(book_id)
        borrowal = BorrowService.open_borrowal(book_id, user_id, due_date, now)

        NotificationService.queue(
            user_id, "book_borrowed",
            f'You borrowed "{book.title}". Due on {due_date:%Y-%m-%d}.',
            borrowal_id=borrowal.id, book_title=book.title, due_date=due_date,
        )
        return borrowal

    # --- return -----------------------------------------------------------

    @staticmethod
    def return_borrowal(borrowal_id: int) -> Borrowal:
        return run_in_transaction(BorrowService._return, borrowal_id)

    @staticmethod
    def _return(borrowal_id: int) -> Borrowal:
        # import here: reservation_service imports this module for fulfil
        from circulation.services.reservation_service import ReservationService

        borrowal = BorrowService.get(borrowal_id)
        if borrowal.returned_at is not None:
            raise AlreadyReturned()

        now = clock.utcnow()
        if not BorrowRepo.close(borrowal, now):
            raise AlreadyReturned()

        user = UserRepo.get_by_id(borrowal.user_id)
        if user:
            user.books_out = max(0, (user.books_out or 0) - 1)
            if borrowal.book_id in user.borrowed_books:
                user.borrowed_books.remove(borrowal.book_id)
            user.borrow_history.append(borrowal.book_id)

        penalty = BorrowService._flag_late_fee(borrowal, now)

        promoted = ReservationService.release_or_promote(borrowal.book_id, now=now)

        title = borrowal.book.title if borrowal.book else f"Book #{borrowal.book_id}"
        message = f'You returned "{title}".'
        if penalty is not None:
            message += f" It was {penalty.days_overdue} day(s) late; a fee of {penalty.amount} was flagged."
        NotificationService.queue(
            borrowal.user_id, "book_returned", message,
            borrowal_id=borrowal.id, book_title=title,
            late_fee=penalty.amount if penalty is not None else None,
        )

        current_app.logger.info(
            f"[borrowals] #{borrowal.id} returned"
            + (f", copy handed to reservation #{promoted.id}" if promoted else "")
        )
        return borrowal

    @staticmethod
    def _flag_late_fee(borrowal: Borrowal, returned_at: datetime) -> Penalty | None:
        """
        days late (capped) * daily fee, capped at MAX_LATE_FEE.
        Only flags the amount; nothing here collects it.
        """
        days_late = (returned_at.date() - borrowal.due_date.date()).days
        if days_late <= 0:
            return None

        cfg = current_app.config
        daily_fee = Decimal(str(cfg.get("LATE_FEE_PER_DAY", "1.00")))
        capped_days = min(days_late, int(cfg.get("MAX_LATE_DAYS", 90)))
        amount = min(daily_fee * capped_days, Decimal(str(cfg.get("MAX_LATE_FEE", "50.00"))))
        amount = amount.quantize(Decimal("0.01"))

        p = Penalty.query.filter_by(borrowal_id=borrowal.id).first()
        if not p:
            p = Penalty(borrowal_id=borrowal.id, is_paid=False)
            db.session.add(p)
        p.days_overdue = days_late
        p.daily_fee = daily_fee
        p.amount = amount
        return p

    # --- overdue bookkeeping (scheduler) ----------------------------------

    @staticmethod
    def mark_overdue(now: datetime) -> list[Borrowal]:
        """Open loans past due -> status overdue. Returns the newly marked ones."""
        changed = []
        for b in BorrowRepo.find_overdue(now):
            if b.status == Borrowal.BORROWED:
                b.status = Borrowal.OVERDUE
                changed.append(b)
        return changed
