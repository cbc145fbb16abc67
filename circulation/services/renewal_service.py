from __future__ import annotations

from datetime import timedelta

from flask import current_app

from circulation.errors import (
    AlreadyProcessed,
    Conflict,
    InvalidInput,
    InvalidState,
    NotFound,
)
from circulation.models.borrowal import Borrowal
from circulation.models.renewal import RenewalRequest
from circulation.repositories.renewal_repo import RenewalRepo
from circulation.repositories.reservation_repo import ReservationRepo
from circulation.services.borrow_service import BorrowService
from circulation.services.notification_service import NotificationService
from circulation.utils import clock
from circulation.utils.tx import run_in_transaction


def _title(borrowal: Borrowal) -> str:
    return borrowal.book.title if borrowal.book else f"Book #{borrowal.book_id}"


class RenewalService:
    """Renewals only move a loan's due date; inventory is never touched."""

    @staticmethod
    def get(renewal_id: int) -> RenewalRequest:
        r = RenewalRepo.get(renewal_id)
        if not r:
            raise NotFound("Renewal request not found")
        return r

    @staticmethod
    def list_renewals(user_id: int | None = None, status: str | None = None):
        return RenewalRepo.list(user_id=user_id, status=status)

    @staticmethod
    def request_renewal(borrowal_id: int, requested_days=None) -> RenewalRequest:
        if requested_days is None:
            requested_days = current_app.config.get("RENEWAL_DAYS", 14)
        if isinstance(requested_days, bool) or not isinstance(requested_days, int) or requested_days < 1:
            raise InvalidInput("requested_days must be a positive whole number")
        return run_in_transaction(RenewalService._request, borrowal_id, requested_days)

    @staticmethod
    def _request(borrowal_id: int, requested_days: int) -> RenewalRequest:
        borrowal = BorrowService.get(borrowal_id)
        if borrowal.returned_at is not None:
            raise InvalidState("This book has already been returned")
        if RenewalRepo.find_pending(borrowal_id):
            raise Conflict("A renewal request for this loan is already pending")
        if ReservationRepo.count_active(borrowal.book_id) > 0:
            raise Conflict("Cannot renew: other readers are waiting for this book")

        renewal = RenewalRepo.add(RenewalRequest(
            borrowal_id=borrowal.id,
            user_id=borrowal.user_id,
            current_due_date=borrowal.due_date,
            requested_days=requested_days,
            status=RenewalRequest.PENDING,
            created_at=clock.utcnow(),
        ))
        NotificationService.queue(
            borrowal.user_id, "renewal_requested",
            f'Renewal of "{_title(borrowal)}" requested. Waiting for a librarian.',
            borrowal_id=borrowal.id, book_title=_title(borrowal), renewal_id=renewal.id,
        )
        return renewal

    @staticmethod
    def approve(renewal_id: int, processed_by: int) -> RenewalRequest:
        return run_in_transaction(RenewalService._approve, renewal_id, processed_by)

    @staticmethod
    def _approve(renewal_id: int, processed_by: int) -> RenewalRequest:
        renewal = RenewalService.get(renewal_id)
        if renewal.status != RenewalRequest.PENDING:
            raise AlreadyProcessed(f"Renewal request already {renewal.status}")

        borrowal = BorrowService.get(renewal.borrowal_id)
        if borrowal.returned_at is not None:
            raise InvalidState("The loan was returned before the renewal was processed")

        now = clock.utcnow()
        new_due = renewal.current_due_date + timedelta(days=renewal.requested_days)
        if not RenewalRepo.transition(
            renewal, RenewalRequest.PENDING,
            status=RenewalRequest.APPROVED,
            processed_by=processed_by, processed_at=now, new_due_date=new_due,
        ):
            raise AlreadyProcessed("Renewal request was changed by someone else")

        borrowal.due_date = new_due
        if borrowal.status == Borrowal.OVERDUE and new_due > now:
            borrowal.status = Borrowal.BORROWED

        NotificationService.queue(
            renewal.user_id, "renewal_approved",
            f'Renewal of "{_title(borrowal)}" approved. New due date: {new_due:%Y-%m-%d}.',
            borrowal_id=borrowal.id, book_title=_title(borrowal),
            new_due_date=new_due, renewal_id=renewal.id,
        )
        return renewal

    @staticmethod
    def reject(renewal_id: int, processed_by: int, reason: str | None = None) -> RenewalRequest:
        return run_in_transaction(RenewalService._reject, renewal_id, processed_by, reason)

    @staticmethod
    def _reject(renewal_id: int, processed_by: int, reason: str | None) -> RenewalRequest:
        renewal = RenewalService.get(renewal_id)
        if renewal.status != RenewalRequest.PENDING:
            raise AlreadyProcessed(f"Renewal request already {renewal.status}")

        reason = (reason or "").strip() or "No reason provided"
        if not RenewalRepo.transition(
            renewal, RenewalRequest.PENDING,
            status=RenewalRequest.REJECTED,
            processed_by=processed_by, processed_at=clock.utcnow(), rejection_reason=reason,
        ):
            raise AlreadyProcessed("Renewal request was changed by someone else")

        borrowal = renewal.borrowal
        NotificationService.queue(
            renewal.user_id, "renewal_rejected",
            f'Renewal of "{_title(borrowal)}" was rejected. Reason: {reason}',
            borrowal_id=borrowal.id, book_title=_title(borrowal), renewal_id=renewal.id,
        )
        return renewal
