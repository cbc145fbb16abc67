from datetime import datetime
from circulation.extensions import db


class Reservation(db.Model):
    """
    Queue entry for a book with no free copy.

    active: waiting, position is its 1-based FIFO rank
    ready: a freed copy is held for this reader until expires_at
    fulfilled / cancelled / expired: terminal, position cleared
    """
    __tablename__ = "reservations"

    ACTIVE = "active"
    READY = "ready"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    OPEN = (ACTIVE, READY)

    id = db.Column(db.Integer, primary_key=True)

    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=ACTIVE, index=True)
    position = db.Column(db.Integer, nullable=True)

    notified_at = db.Column(db.DateTime, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=True, index=True)
    borrowal_id = db.Column(db.Integer, db.ForeignKey("borrowals.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    book = db.relationship("Book", backref="reservations")
    user = db.relationship("User", backref="reservations")
