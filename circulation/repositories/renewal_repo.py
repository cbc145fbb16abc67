from __future__ import annotations

from circulation.models.renewal import RenewalRequest
from circulation.extensions import db
from circulation.utils.tx import conditional_update


class RenewalRepo:
    @staticmethod
    def get(renewal_id: int):
        return db.session.get(RenewalRequest, renewal_id)

    @staticmethod
    def add(renewal: RenewalRequest):
        db.session.add(renewal)
        db.session.flush()
        return renewal

    @staticmethod
    def find_pending(borrowal_id: int):
        return RenewalRequest.query.filter_by(
            borrowal_id=borrowal_id, status=RenewalRequest.PENDING
        ).first()

    @staticmethod
    def list(user_id: int | None = None, status: str | None = None):
        q = RenewalRequest.query
        if user_id is not None:
            q = q.filter(RenewalRequest.user_id == user_id)
        if status:
            q = q.filter(RenewalRequest.status == status)
        return q.order_by(RenewalRequest.created_at.desc(), RenewalRequest.id.desc()).all()

    @staticmethod
    def transition(renewal: RenewalRequest, from_status: str, **values) -> bool:
        return conditional_update(RenewalRequest, renewal, from_status, **values)
