from datetime import datetime, timedelta
from itertools import count

import pytest
from flask_jwt_extended import create_access_token

from circulation import create_app
from circulation.config import TestConfig
from circulation.extensions import db
from circulation.models.book import Book
from circulation.models.user import User
from circulation.services.inventory_service import InventoryService
from circulation.signals import circulation_event
from circulation.utils import clock

T0 = datetime(2024, 1, 1, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, value: datetime):
        self.current = value
        return value


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def now(monkeypatch):
    fake = FakeClock(T0)
    monkeypatch.setattr(clock, "utcnow", fake)
    return fake


@pytest.fixture
def make_book(app):
    def _make(quantity=1, title="Dune", author="Frank Herbert"):
        book = Book(title=title, author=author, quantity=quantity, available=quantity, total_borrows=0)
        db.session.add(book)
        db.session.commit()
        return book
    return _make


@pytest.fixture
def make_user(app):
    seq = count(1)

    def _make(role="reader", username=None, email=None):
        n = next(seq)
        user = User(
            username=username or f"{role}{n}",
            email=email or f"{role}{n}@library.test",
            role=role,
            books_out=0,
            borrowed_books=[],
            borrow_history=[],
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def reader(make_user):
    return make_user("reader")


@pytest.fixture
def librarian(make_user):
    return make_user("librarian")


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def events(app):
    received = []

    def _listener(sender, **kwargs):
        received.append(kwargs)

    circulation_event.connect(_listener)
    yield received
    circulation_event.disconnect(_listener)


@pytest.fixture
def assert_conserved(app):
    """available + held + loaned copies == quantity"""
    def _check(book_id):
        report = InventoryService.audit(book_id)
        assert report["consistent"], report
        return report
    return _check
