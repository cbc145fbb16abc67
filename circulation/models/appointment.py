from datetime import datetime
from circulation.extensions import db


class Appointment(db.Model):
    """
    A reader's promise to pick up a copy at pickup_time.
    The copy is held from creation: pending -> confirmed | cancelled | expired.
    """
    __tablename__ = "appointments"

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    id = db.Column(db.Integer, primary_key=True)

    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    pickup_time = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    agreed_to_terms = db.Column(db.Boolean, nullable=False, default=False)

    confirmed_at = db.Column(db.DateTime, nullable=True)
    confirmed_by = db.Column(db.Integer, nullable=True)
    borrowal_id = db.Column(db.Integer, db.ForeignKey("borrowals.id"), nullable=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    book = db.relationship("Book", backref="appointments")
    user = db.relationship("User", backref="appointments")
