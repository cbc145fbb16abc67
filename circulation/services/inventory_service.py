# circulation/services/inventory_service.py
"""
Inventory ledger: the only code that moves a book's `available` counter.

reserve_copy / release_copy are single conditional UPDATEs, so concurrent
callers on the same book serialize in the database and the last copy can
only be taken once. They do not commit; they run inside the caller's
transaction.
"""
from __future__ import annotations

from flask import current_app

from circulation.errors import InvalidInput, InvalidState, NotFound, OutOfStock
from circulation.models.book import Book
from circulation.repositories.appointment_repo import AppointmentRepo
from circulation.repositories.book_repo import BookRepo
from circulation.repositories.borrow_repo import BorrowRepo
from circulation.repositories.reservation_repo import ReservationRepo
from circulation.utils.tx import run_in_transaction


def _positive_int(value, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a whole number")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidInput(f"{field} must be a whole number")
    if number < 1:
        raise InvalidInput(f"{field} must be at least 1")
    return number


class InventoryService:
    # --- ledger -----------------------------------------------------------

    @staticmethod
    def reserve_copy(book_id: int) -> Book:
        book = BookRepo.get(book_id)
        if not book:
            raise NotFound("Book not found")
        if not BookRepo.take_copy(book_id):
            raise OutOfStock(book_id=book_id)
        return book

    @staticmethod
    def release_copy(book_id: int) -> bool:
        if BookRepo.put_copy_back(book_id):
            return True
        # a release on a full shelf means some other path already put the copy back
        current_app.logger.warning(f"[inventory] release ignored for book #{book_id}: available == quantity")
        return False

    @staticmethod
    def promised_copies(book_id: int) -> dict:
        return {
            "pending_appointments": AppointmentRepo.count_pending_for_book(book_id),
            "open_borrowals": BorrowRepo.count_open_for_book(book_id),
            "ready_reservations": ReservationRepo.count_ready(book_id),
        }

    @staticmethod
    def audit(book_id: int) -> dict:
        """
        available + held/loaned copies must add up to quantity.
        """
        book = InventoryService.get_book(book_id)
        promised = InventoryService.promised_copies(book_id)
        accounted = book.available + sum(promised.values())
        return {
            "book_id": book.id,
            "quantity": book.quantity,
            "available": book.available,
            **promised,
            "waiting": ReservationRepo.count_active(book_id),
            "consistent": accounted == book.quantity,
        }

    # --- catalog ----------------------------------------------------------

    @staticmethod
    def list_books():
        return BookRepo.list_all()

    @staticmethod
    def get_book(book_id: int) -> Book:
        book = BookRepo.get(book_id)
        if not book:
            raise NotFound("Book not found")
        return book

    @staticmethod
    def create_book(data: dict) -> Book:
        title = (data.get("title") or "").strip()
        author = (data.get("author") or "").strip()
        if not title or not author:
            raise InvalidInput("title and author are required")

        quantity = _positive_int(data.get("quantity", 1), "quantity")
        book = Book(
            title=title,
            author=author,
            isbn=(data.get("isbn") or None),
            quantity=quantity,
            available=quantity,
            total_borrows=0,
        )
        return BookRepo.create(book)

    @staticmethod
    def adjust_quantity(book_id: int, quantity) -> Book:
        """
        Changes the number of owned copies. Copies currently promised stay
        promised, so the new quantity cannot go below them. Added copies go
        to waiting readers first, one per copy, and only the rest to the shelf.
        """
        # import here: reservation_service imports this module
        from circulation.services.reservation_service import ReservationService

        new_quantity = _positive_int(quantity, "quantity")

        def _work():
            book = BookRepo.get_for_update(book_id)
            if not book:
                raise NotFound("Book not found")
            delta = new_quantity - book.quantity
            if delta > 0:
                BookRepo.add_copies(book_id, delta)
                for _ in range(delta):
                    ReservationService.release_or_promote(book_id)
            elif delta < 0 and not BookRepo.shift_quantity(book_id, delta):
                raise InvalidState(
                    "Cannot remove copies that are held or on loan",
                    promised=book.quantity - book.available,
                )
            return book

        book = run_in_transaction(_work)
        current_app.logger.info(f"[inventory] book #{book_id} quantity -> {new_quantity}")
        return book
