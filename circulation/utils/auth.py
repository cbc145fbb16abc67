from flask_jwt_extended import get_jwt_identity, get_jwt

from circulation.errors import Forbidden

STAFF_ROLES = ("librarian", "admin")


def current_actor():
    """
    (user_id, role) of the caller. Authentication happens upstream; we only
    read the identity and the "role" claim of the verified JWT.
    """
    user_id = int(get_jwt_identity())
    role = (get_jwt() or {}).get("role", "reader")
    return user_id, role


def is_staff(role: str) -> bool:
    return role in STAFF_ROLES


def ensure_self_or_staff(owner_id: int, actor_id: int, role: str):
    if owner_id != actor_id and not is_staff(role):
        raise Forbidden("This record belongs to another reader")
