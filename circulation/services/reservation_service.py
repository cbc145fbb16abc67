# circulation/services/reservation_service.py
"""
Reservation queue.

A reservation can only be made while no copy is available. When a copy is
freed and the queue is not empty, the copy goes to the head of the queue:
the reservation turns `ready` and keeps holding that copy (available stays
where it is) until a librarian fulfils it, the reader cancels, or the hold
window runs out. Whatever ends a ready hold passes the copy on to the next
reader in line, or back to the shelf when nobody is waiting.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from circulation.errors import (
    AlreadyBorrowed,
    AlreadyProcessed,
    AlreadyReserved,
    BookAvailable,
    NotFound,
    TooLate,
)
from circulation.models.reservation import Reservation
from circulation.repositories.book_repo import BookRepo
from circulation.repositories.borrow_repo import BorrowRepo
from circulation.repositories.reservation_repo import ReservationRepo
from circulation.repositories.user_repo import UserRepo
from circulation.services.inventory_service import InventoryService
from circulation.services.notification_service import NotificationService
from circulation.utils import clock
from circulation.utils.tx import run_in_transaction


def _title(reservation: Reservation) -> str:
    book = reservation.book
    return book.title if book else f"Book #{reservation.book_id}"


class ReservationService:
    @staticmethod
    def get(reservation_id: int) -> Reservation:
        r = ReservationRepo.get(reservation_id)
        if not r:
            raise NotFound("Reservation not found")
        return r

    @staticmethod
    def queue_for_book(book_id: int):
        InventoryService.get_book(book_id)
        return ReservationRepo.active_queue(book_id)

    @staticmethod
    def list_reservations(user_id: int | None = None, status: str | None = None):
        return ReservationRepo.list(user_id=user_id, status=status)

    # --- commands ---------------------------------------------------------

    @staticmethod
    def create_reservation(book_id: int, user_id: int) -> Reservation:
        return run_in_transaction(ReservationService._create, book_id, user_id)

    @staticmethod
    def _create(book_id: int, user_id: int) -> Reservation:
        # lock the book row so positions are handed out one at a time per book
        book = BookRepo.get_for_update(book_id)
        if not book:
            raise NotFound("Book not found")
        if not UserRepo.get_by_id(user_id):
            raise NotFound("Reader not found")

        if ReservationRepo.find_open(book_id, user_id):
            raise AlreadyReserved()
        if BorrowRepo.find_open(book_id, user_id):
            raise AlreadyBorrowed()
        if book.available > 0:
            raise BookAvailable()

        position = ReservationRepo.count_active(book_id) + 1
        reservation = ReservationRepo.add(Reservation(
            book_id=book_id,
            user_id=user_id,
            status=Reservation.ACTIVE,
            position=position,
            created_at=clock.utcnow(),
        ))

        NotificationService.queue(
            user_id, "reservation_created",
            f'You reserved "{book.title}". Queue position: {position}.',
            book_title=book.title, position=position, reservation_id=reservation.id,
        )
        return reservation

    @staticmethod
    def cancel(reservation_id: int, reason: str | None = None) -> Reservation:
        return run_in_transaction(ReservationService._cancel, reservation_id, reason)

    @staticmethod
    def _cancel(reservation_id: int, reason: str | None) -> Reservation:
        r = ReservationService.get(reservation_id)
        was = r.status
        if was not in Reservation.OPEN:
            raise AlreadyProcessed(f"Reservation is already {was}")

        if not ReservationRepo.transition(r, was, status=Reservation.CANCELLED, position=None):
            raise AlreadyProcessed("Reservation was changed by someone else")

        if was == Reservation.READY:
            # the held copy moves on
            ReservationService.release_or_promote(r.book_id)
        else:
            ReservationService._compact(r.book_id)

        NotificationService.queue(
            r.user_id, "reservation_cancelled",
            f'Your reservation for "{_title(r)}" was cancelled.'
            + (f" Reason: {reason}" if reason else ""),
            book_title=_title(r), reservation_id=r.id,
        )
        return r

    @staticmethod
    def fulfill(reservation_id: int, processed_by: int):
        """
        Librarian hands the held copy to the reader: ready -> fulfilled and a
        borrowal is opened on the copy the reservation was holding.
        """
        outcome = run_in_transaction(ReservationService._fulfill, reservation_id, processed_by)
        if outcome["borrowal"] is None:
            raise TooLate(
                "The reservation hold expired before pickup",
                reservation_id=reservation_id,
            )
        return outcome["reservation"], outcome["borrowal"]

    @staticmethod
    def _fulfill(reservation_id: int, processed_by: int) -> dict:
        from circulation.services.borrow_service import BorrowService

        r = ReservationService.get(reservation_id)
        if r.status != Reservation.READY:
            raise AlreadyProcessed(f"Reservation is {r.status}, not ready")

        now = clock.utcnow()
        if r.expires_at and now > r.expires_at:
            ReservationService._expire(r)
            return {"reservation": r, "borrowal": None}

        if BorrowRepo.find_open(r.book_id, r.user_id):
            raise AlreadyBorrowed()

        if not ReservationRepo.transition(r, Reservation.READY, status=Reservation.FULFILLED):
            raise AlreadyProcessed("Reservation was changed by someone else")

        due = now + timedelta(days=current_app.config.get("LOAN_DAYS", 14))
        borrowal = BorrowService.open_borrowal(r.book_id, r.user_id, due, now)
        r.borrowal_id = borrowal.id

        current_app.logger.info(
            f"[reservations] #{r.id} fulfilled by {processed_by}, borrowal #{borrowal.id}"
        )
        return {"reservation": r, "borrowal": borrowal}

    # --- queue mechanics (run inside the caller's transaction) ------------

    @staticmethod
    def promote_next(book_id: int, now: datetime | None = None) -> Reservation | None:
        """
        Head of the active queue -> ready, holding the freed copy for
        RESERVATION_HOLD_DAYS. Does not touch available.
        """
        now = now or clock.utcnow()
        hold_days = current_app.config.get("RESERVATION_HOLD_DAYS", 7)

        for head in ReservationRepo.active_queue(book_id):
            expires_at = now + timedelta(days=hold_days)
            if ReservationRepo.transition(
                head, Reservation.ACTIVE,
                status=Reservation.READY, position=None,
                notified_at=now, expires_at=expires_at,
            ):
                ReservationService._compact(book_id)
                NotificationService.queue(
                    head.user_id, "reservation_ready",
                    f'"{_title(head)}" is ready for you. '
                    f'Pick it up before {expires_at:%Y-%m-%d %H:%M} UTC.',
                    book_title=_title(head), expires_at=expires_at, reservation_id=head.id,
                )
                current_app.logger.info(
                    f"[reservations] book #{book_id}: reservation #{head.id} promoted to ready"
                )
                return head
        return None

    @staticmethod
    def release_or_promote(book_id: int, now: datetime | None = None) -> Reservation | None:
        """
        Every path that frees a copy ends here: first reader in line gets
        it, otherwise it goes back to available.
        """
        promoted = ReservationService.promote_next(book_id, now=now)
        if promoted is None:
            InventoryService.release_copy(book_id)
        return promoted

    @staticmethod
    def expire_if_stale(reservation_id: int, now: datetime) -> Reservation:
        """Sweeper entry: ready reservation past expires_at -> expired."""
        r = ReservationService.get(reservation_id)
        if r.status != Reservation.READY or not r.expires_at or now <= r.expires_at:
            raise AlreadyProcessed(f"Reservation #{reservation_id} is {r.status}, nothing to expire")
        ReservationService._expire(r, now=now)
        return r

    @staticmethod
    def _expire(r: Reservation, now: datetime | None = None):
        if not ReservationRepo.transition(r, Reservation.READY, status=Reservation.EXPIRED, position=None):
            raise AlreadyProcessed("Reservation was changed by someone else")
        ReservationService.release_or_promote(r.book_id, now=now)
        NotificationService.queue(
            r.user_id, "reservation_expired",
            f'Your hold on "{_title(r)}" expired.',
            book_title=_title(r), reservation_id=r.id,
        )

    @staticmethod
    def _compact(book_id: int):
        """Renumber the active queue 1..n in FIFO order."""
        for index, res in enumerate(ReservationRepo.active_queue(book_id), start=1):
            if res.position != index:
                res.position = index
