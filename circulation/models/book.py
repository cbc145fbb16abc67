from datetime import datetime
from circulation.extensions import db


class Book(db.Model):
    __tablename__ = "books"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    author = db.Column(db.String(200), nullable=False, index=True)
    isbn = db.Column(db.String(32), unique=True, nullable=True, index=True)

    # quantity: copies owned, available: copies not promised or loaned
    quantity = db.Column(db.Integer, nullable=False, default=1)
    available = db.Column(db.Integer, nullable=False, default=1)

    # popularity, never decremented
    total_borrows = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("available >= 0", name="ck_books_available_non_negative"),
        db.CheckConstraint("available <= quantity", name="ck_books_available_le_quantity"),
    )

    @property
    def status(self) -> str:
        return "Available" if (self.available or 0) > 0 else "Borrowed"
