from sqlalchemy.orm.util import identity_key

from circulation.models.book import Book
from circulation.extensions import db


class BookRepo:
    @staticmethod
    def list_all():
        return Book.query.order_by(Book.id.desc()).all()

    @staticmethod
    def get(book_id: int):
        return db.session.get(Book, book_id)

    @staticmethod
    def get_for_update(book_id: int):
        # row lock where the backend supports it (SQLite ignores FOR UPDATE)
        return Book.query.filter(Book.id == book_id).with_for_update().first()

    @staticmethod
    def create(book: Book):
        db.session.add(book)
        db.session.commit()
        return book

    @staticmethod
    def take_copy(book_id: int) -> bool:
        """available -= 1 only if a copy is left. Atomic in the database."""
        rows = (
            Book.query
            .filter(Book.id == book_id, Book.available > 0)
            .update({Book.available: Book.available - 1}, synchronize_session=False)
        )
        BookRepo._expire_counters(book_id)
        return rows == 1

    @staticmethod
    def put_copy_back(book_id: int) -> bool:
        """available += 1, never above quantity."""
        rows = (
            Book.query
            .filter(Book.id == book_id, Book.available < Book.quantity)
            .update({Book.available: Book.available + 1}, synchronize_session=False)
        )
        BookRepo._expire_counters(book_id)
        return rows == 1

    @staticmethod
    def shift_quantity(book_id: int, delta: int) -> bool:
        """quantity and available move together; refused if available would go negative."""
        rows = (
            Book.query
            .filter(Book.id == book_id, Book.available + delta >= 0)
            .update(
                {Book.quantity: Book.quantity + delta, Book.available: Book.available + delta},
                synchronize_session=False,
            )
        )
        BookRepo._expire_counters(book_id)
        return rows == 1

    @staticmethod
    def add_copies(book_id: int, count: int) -> bool:
        """quantity += count; available is left to the caller (queue first)."""
        rows = (
            Book.query
            .filter(Book.id == book_id)
            .update({Book.quantity: Book.quantity + count}, synchronize_session=False)
        )
        BookRepo._expire_counters(book_id)
        return rows == 1

    @staticmethod
    def count_borrow(book_id: int):
        Book.query.filter(Book.id == book_id).update(
            {Book.total_borrows: Book.total_borrows + 1}, synchronize_session=False
        )
        BookRepo._expire_counters(book_id)

    @staticmethod
    def _expire_counters(book_id: int):
        book = db.session.identity_map.get(identity_key(Book, book_id))
        if book is not None:
            db.session.expire(book, ["quantity", "available", "total_borrows"])
