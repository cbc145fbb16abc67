# circulation/services/appointment_service.py
"""
Pickup appointments.

pending --confirm--> confirmed (borrowal opened)
pending --cancel---> cancelled (copy released)
pending --timeout--> expired   (more than APPOINTMENT_GRACE_HOURS after pickup_time)

The copy is taken out of `available` when the appointment is created, so
two readers can never be promised the same last copy.
"""
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from circulation.errors import (
    AlreadyBorrowed,
    AlreadyProcessed,
    Conflict,
    InvalidInput,
    NotFound,
    TooLate,
)
from circulation.models.appointment import Appointment
from circulation.repositories.appointment_repo import AppointmentRepo
from circulation.repositories.borrow_repo import BorrowRepo
from circulation.repositories.user_repo import UserRepo
from circulation.services.borrow_service import BorrowService
from circulation.services.inventory_service import InventoryService
from circulation.services.notification_service import NotificationService
from circulation.services.reservation_service import ReservationService
from circulation.utils import clock
from circulation.utils.tx import run_in_transaction


def _grace() -> timedelta:
    return timedelta(hours=current_app.config.get("APPOINTMENT_GRACE_HOURS", 2))


def _title(appt: Appointment) -> str:
    return appt.book.title if appt.book else f"Book #{appt.book_id}"


class AppointmentService:
    @staticmethod
    def get(appointment_id: int) -> Appointment:
        appt = AppointmentRepo.get(appointment_id)
        if not appt:
            raise NotFound("Appointment not found")
        return appt

    @staticmethod
    def list_appointments(user_id: int | None = None, status: str | None = None):
        return AppointmentRepo.list(user_id=user_id, status=status)

    @staticmethod
    def is_past_grace(appt: Appointment, now: datetime) -> bool:
        return now - appt.pickup_time > _grace()

    # --- create -----------------------------------------------------------

    @staticmethod
    def create_appointment(book_id: int, user_id: int, pickup_time: datetime, agreed_to_terms) -> Appointment:
        if agreed_to_terms is not True:
            raise InvalidInput("You must agree to the borrowing terms")
        if pickup_time is None:
            raise InvalidInput("pickup_time is required")
        if pickup_time <= clock.utcnow():
            raise InvalidInput("Pickup time must be in the future")

        return run_in_transaction(AppointmentService._create, book_id, user_id, pickup_time)

    @staticmethod
    def _create(book_id: int, user_id: int, pickup_time: datetime) -> Appointment:
        book = InventoryService.get_book(book_id)
        if not UserRepo.get_by_id(user_id):
            raise NotFound("Reader not found")

        if AppointmentRepo.find_pending(book_id, user_id):
            raise Conflict("You already have a pending appointment for this book")
        if BorrowRepo.find_open(book_id, user_id):
            raise AlreadyBorrowed()

        InventoryService.reserve_copy(book_id)

        appt = AppointmentRepo.add(Appointment(
            book_id=book_id,
            user_id=user_id,
            pickup_time=pickup_time,
            agreed_to_terms=True,
            status=Appointment.PENDING,
            created_at=clock.utcnow(),
        ))

        grace_hours = current_app.config.get("APPOINTMENT_GRACE_HOURS", 2)
        NotificationService.queue(
            user_id, "appointment_created",
            f'Pickup booked for "{book.title}" at {pickup_time:%Y-%m-%d %H:%M} UTC. '
            f"Arriving more than {grace_hours:g} hours late cancels it.",
            book_title=book.title, pickup_time=pickup_time, appointment_id=appt.id,
        )
        return appt

    # --- confirm ----------------------------------------------------------

    @staticmethod
    def confirm(appointment_id: int, confirmed_by: int):
        """
        Returns (appointment, borrowal). Raises TooLate after committing the
        expiry when the reader shows up past the grace period.
        """
        outcome = run_in_transaction(AppointmentService._confirm, appointment_id, confirmed_by)
        if outcome["borrowal"] is None:
            raise TooLate(
                f"Pickup was {outcome['hours_late']:.1f} hours late; the appointment expired "
                "and the copy was released",
                appointment_id=appointment_id,
            )
        return outcome["appointment"], outcome["borrowal"]

    @staticmethod
    def _confirm(appointment_id: int, confirmed_by: int) -> dict:
        appt = AppointmentService.get(appointment_id)
        if appt.status != Appointment.PENDING:
            raise AlreadyProcessed(f"Appointment already {appt.status}")

        now = clock.utcnow()
        hours_late = (now - appt.pickup_time).total_seconds() / 3600
        if AppointmentService.is_past_grace(appt, now):
            AppointmentService._expire(
                appt, now, reason=f"Picked up {hours_late:.1f} hours late"
            )
            return {"appointment": appt, "borrowal": None, "hours_late": hours_late}

        # a direct borrow may have happened since the appointment was booked
        if BorrowRepo.find_open(appt.book_id, appt.user_id):
            raise AlreadyBorrowed()

        if not AppointmentRepo.transition(
            appt, Appointment.PENDING,
            status=Appointment.CONFIRMED, confirmed_at=now, confirmed_by=confirmed_by,
        ):
            raise AlreadyProcessed("Appointment was changed by someone else")

        due = now + timedelta(days=current_app.config.get("LOAN_DAYS", 14))
        borrowal = BorrowService.open_borrowal(appt.book_id, appt.user_id, due, now)
        appt.borrowal_id = borrowal.id

        NotificationService.queue(
            appt.user_id, "appointment_confirmed",
            f'Pickup of "{_title(appt)}" confirmed. Due on {due:%Y-%m-%d}.',
            borrowal_id=borrowal.id, book_title=_title(appt), due_date=due,
            pickup_time=appt.pickup_time, appointment_id=appt.id,
        )
        return {"appointment": appt, "borrowal": borrowal, "hours_late": hours_late}

    # --- cancel -----------------------------------------------------------

    @staticmethod
    def cancel(appointment_id: int, reason: str | None = None) -> Appointment:
        return run_in_transaction(AppointmentService._cancel, appointment_id, reason)

    @staticmethod
    def _cancel(appointment_id: int, reason: str | None) -> Appointment:
        appt = AppointmentService.get(appointment_id)
        if appt.status != Appointment.PENDING:
            raise AlreadyProcessed(f"Appointment already {appt.status}")

        reason = (reason or "").strip() or "Cancelled by user"
        if not AppointmentRepo.transition(
            appt, Appointment.PENDING,
            status=Appointment.CANCELLED, cancellation_reason=reason,
        ):
            raise AlreadyProcessed("Appointment was changed by someone else")

        ReservationService.release_or_promote(appt.book_id)

        NotificationService.queue(
            appt.user_id, "appointment_cancelled",
            f'Your pickup of "{_title(appt)}" was cancelled. Reason: {reason}',
            book_title=_title(appt), appointment_id=appt.id,
        )
        return appt

    # --- expire -----------------------------------------------------------

    @staticmethod
    def expire_if_due(appointment_id: int, now: datetime) -> Appointment:
        """Sweeper entry. AlreadyProcessed when there is nothing to do."""
        appt = AppointmentService.get(appointment_id)
        if appt.status != Appointment.PENDING:
            raise AlreadyProcessed(f"Appointment #{appointment_id} already {appt.status}")
        if not AppointmentService.is_past_grace(appt, now):
            raise AlreadyProcessed(f"Appointment #{appointment_id} is still within its pickup window")
        AppointmentService._expire(appt, now, reason="Not picked up in time")
        return appt

    @staticmethod
    def _expire(appt: Appointment, now: datetime, reason: str):
        grace_hours = current_app.config.get("APPOINTMENT_GRACE_HOURS", 2)
        if not AppointmentRepo.transition(
            appt, Appointment.PENDING,
            status=Appointment.EXPIRED,
            cancellation_reason=f"{reason} (limit {grace_hours:g} hours)",
        ):
            raise AlreadyProcessed("Appointment was changed by someone else")

        ReservationService.release_or_promote(appt.book_id, now=now)

        NotificationService.queue(
            appt.user_id, "appointment_expired",
            f'Your pickup of "{_title(appt)}" expired: not collected within '
            f"{grace_hours:g} hours of {appt.pickup_time:%Y-%m-%d %H:%M} UTC.",
            book_title=_title(appt), pickup_time=appt.pickup_time, appointment_id=appt.id,
        )
