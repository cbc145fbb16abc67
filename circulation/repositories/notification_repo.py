from circulation.models.notification import Notification
from circulation.extensions import db


class NotificationRepo:
    @staticmethod
    def already_sent(borrowal_id: int, kind: str) -> bool:
        return Notification.query.filter_by(borrowal_id=borrowal_id, kind=kind).first() is not None

    @staticmethod
    def add(entry: Notification):
        db.session.add(entry)
        return entry

    @staticmethod
    def list_for_user(user_id: int, unread_only: bool = False):
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter(Notification.is_read.is_(False))
        return q.order_by(Notification.id.desc()).all()

    @staticmethod
    def mark_all_read(user_id: int) -> int:
        rows = (
            Notification.query
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({"is_read": True}, synchronize_session=False)
        )
        db.session.commit()
        return rows
