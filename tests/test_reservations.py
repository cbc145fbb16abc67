from datetime import timedelta

import pytest

from circulation.errors import (
    AlreadyBorrowed,
    AlreadyProcessed,
    AlreadyReserved,
    BookAvailable,
    NotFound,
    TooLate,
)
from circulation.extensions import db
from circulation.models.book import Book
from circulation.models.reservation import Reservation
from circulation.services.borrow_service import BorrowService
from circulation.services.reservation_service import ReservationService


@pytest.fixture
def lent_book(make_book, make_user, now):
    """One copy, already out on loan. Returns (book, borrowal)."""
    book = make_book(quantity=1)
    holder = make_user()
    borrowal = BorrowService.create_direct_borrowal(book.id, holder.id)
    return book, borrowal


def _positions(book_id):
    return [(r.user_id, r.position) for r in ReservationService.queue_for_book(book_id)]


def test_cannot_reserve_an_available_book(make_book, reader, now):
    book = make_book(quantity=1)
    with pytest.raises(BookAvailable):
        ReservationService.create_reservation(book.id, reader.id)
    assert Reservation.query.count() == 0


def test_reserve_unknown_book(reader, now):
    with pytest.raises(NotFound):
        ReservationService.create_reservation(777, reader.id)


def test_queue_positions_follow_arrival(lent_book, make_user, events):
    book, _ = lent_book
    readers = [make_user() for _ in range(3)]

    made = [ReservationService.create_reservation(book.id, u.id) for u in readers]

    assert [r.position for r in made] == [1, 2, 3]
    assert all(r.status == Reservation.ACTIVE for r in made)
    assert [e["payload"]["position"] for e in events if e["kind"] == "reservation_created"] == [1, 2, 3]


def test_second_reservation_by_same_reader_is_refused(lent_book, reader):
    book, _ = lent_book
    ReservationService.create_reservation(book.id, reader.id)
    with pytest.raises(AlreadyReserved):
        ReservationService.create_reservation(book.id, reader.id)
    assert ReservationService.queue_for_book(book.id)[0].position == 1


def test_cancel_in_the_middle_compacts_the_queue(lent_book, make_user):
    book, _ = lent_book
    a, b, c = make_user(), make_user(), make_user()
    ReservationService.create_reservation(book.id, a.id)
    middle = ReservationService.create_reservation(book.id, b.id)
    ReservationService.create_reservation(book.id, c.id)

    cancelled = ReservationService.cancel(middle.id)

    assert cancelled.status == Reservation.CANCELLED
    assert cancelled.position is None
    assert _positions(book.id) == [(a.id, 1), (c.id, 2)]
    assert db.session.get(Book, book.id).available == 0

    with pytest.raises(AlreadyProcessed):
        ReservationService.cancel(middle.id)


def test_return_promotes_the_head_and_keeps_the_copy_held(lent_book, make_user, now, events, assert_conserved):
    book, borrowal = lent_book
    first, second = make_user(), make_user()
    head = ReservationService.create_reservation(book.id, first.id)
    ReservationService.create_reservation(book.id, second.id)

    now.advance(days=3)
    BorrowService.return_borrowal(borrowal.id)

    head = ReservationService.get(head.id)
    assert head.status == Reservation.READY
    assert head.position is None
    assert head.notified_at == now()
    assert head.expires_at == now() + timedelta(days=7)
    assert _positions(book.id) == [(second.id, 1)]
    assert db.session.get(Book, book.id).available == 0

    ready = [e for e in events if e["kind"] == "reservation_ready"]
    assert len(ready) == 1
    assert ready[0]["user_id"] == first.id
    assert_conserved(book.id)


def test_cancel_ready_reservation_passes_copy_to_next(lent_book, make_user, now, assert_conserved):
    book, borrowal = lent_book
    first, second, third = make_user(), make_user(), make_user()
    head = ReservationService.create_reservation(book.id, first.id)
    nxt = ReservationService.create_reservation(book.id, second.id)
    ReservationService.create_reservation(book.id, third.id)
    BorrowService.return_borrowal(borrowal.id)

    ReservationService.cancel(head.id, "no longer needed")

    assert ReservationService.get(head.id).status == Reservation.CANCELLED
    assert ReservationService.get(nxt.id).status == Reservation.READY
    assert _positions(book.id) == [(third.id, 1)]
    assert db.session.get(Book, book.id).available == 0
    assert_conserved(book.id)


def test_cancel_ready_reservation_with_empty_queue_frees_the_copy(lent_book, reader, now, assert_conserved):
    book, borrowal = lent_book
    head = ReservationService.create_reservation(book.id, reader.id)
    BorrowService.return_borrowal(borrowal.id)
    assert db.session.get(Book, book.id).available == 0

    ReservationService.cancel(head.id)

    assert db.session.get(Book, book.id).available == 1
    assert_conserved(book.id)


def test_fulfil_opens_a_borrowal_on_the_held_copy(lent_book, reader, librarian, now, assert_conserved):
    book, borrowal = lent_book
    head = ReservationService.create_reservation(book.id, reader.id)
    BorrowService.return_borrowal(borrowal.id)

    now.advance(days=2)
    reservation, loan = ReservationService.fulfill(head.id, processed_by=librarian.id)

    assert reservation.status == Reservation.FULFILLED
    assert reservation.borrowal_id == loan.id
    assert loan.user_id == reader.id
    assert loan.due_date == now() + timedelta(days=14)

    book = db.session.get(Book, book.id)
    assert book.available == 0
    assert book.total_borrows == 2
    assert_conserved(book.id)

    with pytest.raises(AlreadyProcessed):
        ReservationService.fulfill(head.id, processed_by=librarian.id)


def test_fulfil_requires_ready(lent_book, reader, librarian, now):
    book, _ = lent_book
    r = ReservationService.create_reservation(book.id, reader.id)
    with pytest.raises(AlreadyProcessed):
        ReservationService.fulfill(r.id, processed_by=librarian.id)


def test_fulfil_after_hold_window_expires_and_moves_on(lent_book, make_user, librarian, now, assert_conserved):
    book, borrowal = lent_book
    late, waiting = make_user(), make_user()
    head = ReservationService.create_reservation(book.id, late.id)
    nxt = ReservationService.create_reservation(book.id, waiting.id)
    BorrowService.return_borrowal(borrowal.id)

    now.advance(days=7, minutes=1)
    with pytest.raises(TooLate):
        ReservationService.fulfill(head.id, processed_by=librarian.id)

    assert ReservationService.get(head.id).status == Reservation.EXPIRED
    promoted = ReservationService.get(nxt.id)
    assert promoted.status == Reservation.READY
    assert promoted.expires_at == now() + timedelta(days=7)
    assert db.session.get(Book, book.id).available == 0
    assert_conserved(book.id)


def test_reader_can_queue_again_after_cancelling(lent_book, reader):
    book, _ = lent_book
    r = ReservationService.create_reservation(book.id, reader.id)
    ReservationService.cancel(r.id)

    again = ReservationService.create_reservation(book.id, reader.id)
    assert again.position == 1


def test_loan_holder_cannot_queue_for_the_same_book(lent_book):
    book, borrowal = lent_book
    with pytest.raises(AlreadyBorrowed):
        ReservationService.create_reservation(book.id, borrowal.user_id)
    assert ReservationService.queue_for_book(book.id) == []


def test_fulfil_refused_when_reader_already_has_a_copy(make_book, make_user, librarian, now, assert_conserved):
    book = make_book(quantity=2)
    reader = make_user()
    first = BorrowService.create_direct_borrowal(book.id, make_user().id)
    second = BorrowService.create_direct_borrowal(book.id, make_user().id)
    head = ReservationService.create_reservation(book.id, reader.id)

    BorrowService.return_borrowal(first.id)
    BorrowService.return_borrowal(second.id)
    assert ReservationService.get(head.id).status == Reservation.READY
    assert db.session.get(Book, book.id).available == 1

    # reader takes the shelf copy at the desk while the held one waits
    BorrowService.create_direct_borrowal(book.id, reader.id)
    with pytest.raises(AlreadyBorrowed):
        ReservationService.fulfill(head.id, processed_by=librarian.id)

    assert ReservationService.get(head.id).status == Reservation.READY
    assert len(BorrowService.list_borrowals(user_id=reader.id, open_only=True)) == 1
    assert_conserved(book.id)
