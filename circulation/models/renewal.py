from datetime import datetime
from circulation.extensions import db


class RenewalRequest(db.Model):
    __tablename__ = "renewals"

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    id = db.Column(db.Integer, primary_key=True)

    borrowal_id = db.Column(db.Integer, db.ForeignKey("borrowals.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # due date when the request was made; approval adds requested_days to it
    current_due_date = db.Column(db.DateTime, nullable=False)
    requested_days = db.Column(db.Integer, nullable=False, default=14)
    new_due_date = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    processed_by = db.Column(db.Integer, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    rejection_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    borrowal = db.relationship("Borrowal", backref="renewals")
