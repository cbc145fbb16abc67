from circulation.models.user import User
from circulation.extensions import db


class UserRepo:
    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)
