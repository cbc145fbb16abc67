# circulation/models/notification.py
from datetime import datetime
from circulation.extensions import db


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # appointment_confirmed, appointment_expired, reservation_ready, renewal_approved, overdue ...
    kind = db.Column(db.String(50), nullable=False, index=True)
    message = db.Column(db.String(1000), nullable=False)

    # semantic fields for the delivery side: book_title, due_date, pickup_time, new_due_date ...
    payload = db.Column(db.JSON, nullable=False, default=dict)

    # set for loan reminders so a reminder goes out once per loan
    borrowal_id = db.Column(db.Integer, db.ForeignKey("borrowals.id"), nullable=True, index=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)

    # delivery by mail (optional subscriber)
    mailed = db.Column(db.Boolean, nullable=False, default=False)
    mail_error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
