from datetime import timedelta

from circulation.extensions import db
from circulation.models.appointment import Appointment
from circulation.models.book import Book
from circulation.models.reservation import Reservation
from circulation.repositories.appointment_repo import AppointmentRepo
from circulation.services.appointment_service import AppointmentService
from circulation.services.borrow_service import BorrowService
from circulation.services.reservation_service import ReservationService
from circulation.tasks.expiration_sweep import run_sweep


def test_sweep_expires_missed_pickups(make_book, reader, now, events, assert_conserved):
    book = make_book(quantity=1)
    appt = AppointmentService.create_appointment(book.id, reader.id, now() + timedelta(hours=1), True)

    now.advance(hours=3, minutes=1)
    result = run_sweep()

    assert result == {"expired_appointments": [appt.id], "expired_reservations": [], "skipped": 0, "failed": 0}
    assert db.session.get(Appointment, appt.id).status == Appointment.EXPIRED
    assert db.session.get(Book, book.id).available == 1
    assert events[-1]["kind"] == "appointment_expired"
    assert_conserved(book.id)


def test_second_sweep_changes_nothing(make_book, reader, now):
    book = make_book(quantity=1)
    AppointmentService.create_appointment(book.id, reader.id, now() + timedelta(hours=1), True)
    now.advance(hours=4)
    run_sweep()

    assert run_sweep() == {"expired_appointments": [], "expired_reservations": [], "skipped": 0, "failed": 0}
    assert db.session.get(Book, book.id).available == 1


def test_sweep_leaves_appointments_inside_the_grace_window(make_book, reader, now):
    book = make_book(quantity=1)
    appt = AppointmentService.create_appointment(book.id, reader.id, now() + timedelta(hours=1), True)

    now.advance(hours=3)  # exactly two hours after pickup_time
    result = run_sweep()

    assert result["expired_appointments"] == []
    assert db.session.get(Appointment, appt.id).status == Appointment.PENDING
    assert db.session.get(Book, book.id).available == 0


def test_sweep_expires_stale_ready_reservation_and_promotes_next(make_book, make_user, now, assert_conserved):
    book = make_book(quantity=1)
    loan = BorrowService.create_direct_borrowal(book.id, make_user().id)
    first = ReservationService.create_reservation(book.id, make_user().id)
    second = ReservationService.create_reservation(book.id, make_user().id)
    BorrowService.return_borrowal(loan.id)

    now.advance(days=8)
    result = run_sweep()

    assert result["expired_reservations"] == [first.id]
    assert ReservationService.get(first.id).status == Reservation.EXPIRED
    promoted = ReservationService.get(second.id)
    assert promoted.status == Reservation.READY
    assert promoted.expires_at == now() + timedelta(days=7)
    assert db.session.get(Book, book.id).available == 0
    assert_conserved(book.id)


def test_sweep_skips_records_someone_else_already_closed(make_book, reader, now, monkeypatch):
    book = make_book(quantity=1)
    appt = AppointmentService.create_appointment(book.id, reader.id, now() + timedelta(hours=1), True)
    AppointmentService.cancel(appt.id)
    cancelled = db.session.get(Appointment, appt.id)

    # the candidate list was read before the reader cancelled
    monkeypatch.setattr(AppointmentRepo, "find_past_grace", staticmethod(lambda cutoff: [cancelled]))
    now.advance(hours=5)
    result = run_sweep()

    assert result == {"expired_appointments": [], "expired_reservations": [], "skipped": 1, "failed": 0}
    assert db.session.get(Appointment, appt.id).status == Appointment.CANCELLED
    assert db.session.get(Book, book.id).available == 1


def test_one_broken_record_does_not_stop_the_sweep(make_book, make_user, now, monkeypatch):
    first_book, second_book = make_book(title="A"), make_book(title="B")
    broken = AppointmentService.create_appointment(first_book.id, make_user().id, now() + timedelta(hours=1), True)
    fine = AppointmentService.create_appointment(second_book.id, make_user().id, now() + timedelta(hours=2), True)

    broken_id = broken.id
    real_expire = AppointmentService.expire_if_due

    def flaky_expire(appointment_id, at):
        if appointment_id == broken_id:
            raise RuntimeError("disk I/O error")
        return real_expire(appointment_id, at)

    monkeypatch.setattr(AppointmentService, "expire_if_due", staticmethod(flaky_expire))
    now.advance(hours=6)
    result = run_sweep()

    assert result == {"expired_appointments": [fine.id], "expired_reservations": [], "skipped": 0, "failed": 1}
    assert db.session.get(Appointment, broken_id).status == Appointment.PENDING
    assert db.session.get(Book, first_book.id).available == 0
    assert db.session.get(Book, second_book.id).available == 1
