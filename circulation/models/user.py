from datetime import datetime
from sqlalchemy.ext.mutable import MutableList
from circulation.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="reader")  # reader/librarian/admin

    books_out = db.Column(db.Integer, nullable=False, default=0)
    borrowed_books = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    borrow_history = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
