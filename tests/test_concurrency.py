import threading
from datetime import timedelta

import pytest

from circulation import create_app
from circulation.config import TestConfig
from circulation.errors import OutOfStock
from circulation.extensions import db
from circulation.models.appointment import Appointment
from circulation.models.book import Book
from circulation.models.user import User
from circulation.services.appointment_service import AppointmentService


@pytest.fixture
def file_app(tmp_path):
    """Real SQLite file so each thread gets its own connection and locks are real."""
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'circulation.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def test_two_readers_race_for_the_last_copy(file_app, now):
    with file_app.app_context():
        book = Book(title="Dune", author="Frank Herbert", quantity=1, available=1, total_borrows=0)
        readers = [
            User(username=f"racer{i}", email=f"racer{i}@library.test", role="reader",
                 books_out=0, borrowed_books=[], borrow_history=[])
            for i in range(2)
        ]
        db.session.add_all([book, *readers])
        db.session.commit()
        book_id = book.id
        reader_ids = [u.id for u in readers]

    pickup = now() + timedelta(hours=1)
    start = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def attempt(user_id):
        with file_app.app_context():
            start.wait()
            try:
                AppointmentService.create_appointment(book_id, user_id, pickup, True)
                result = "booked"
            except OutOfStock:
                result = "out_of_stock"
            except Exception as e:  # surfaced by the assertion below
                result = f"error: {e!r}"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(uid,)) for uid in reader_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["booked", "out_of_stock"]

    with file_app.app_context():
        assert db.session.get(Book, book_id).available == 0
        assert Appointment.query.filter_by(book_id=book_id).count() == 1
