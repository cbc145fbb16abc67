from datetime import datetime
from circulation.extensions import db


class Borrowal(db.Model):
    __tablename__ = "borrowals"

    BORROWED = "borrowed"
    OVERDUE = "overdue"
    RETURNED = "returned"

    OPEN = (BORROWED, OVERDUE)

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)

    borrowed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    due_date = db.Column(db.DateTime, nullable=False)
    returned_at = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=BORROWED, index=True)  # borrowed/overdue/returned

    user = db.relationship("User", backref="borrowals")
    book = db.relationship("Book", backref="borrowals")
