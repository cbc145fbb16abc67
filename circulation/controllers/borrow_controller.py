from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.borrow_service import BorrowService
from circulation.utils.auth import current_actor, ensure_self_or_staff, is_staff
from circulation.utils.clock import isoformat
from circulation.utils.decorators import staff_required
from circulation.utils.payload import require_int, optional_int, optional_datetime

borrow_bp = Blueprint("borrowals", __name__)


def _borrowal_json(x):
    return {
        "id": x.id,
        "book_id": x.book_id,
        "book_title": x.book.title if x.book else None,
        "user_id": x.user_id,
        "borrowed_at": isoformat(x.borrowed_at),
        "due_date": isoformat(x.due_date),
        "returned_at": isoformat(x.returned_at),
        "status": x.status,
    }


@borrow_bp.post("/")
@jwt_required()
@staff_required
def direct_borrow():
    # readers go through appointments; only the desk lends directly
    data = request.get_json(silent=True) or {}
    b = BorrowService.create_direct_borrowal(
        require_int(data, "book_id"),
        require_int(data, "user_id"),
        optional_datetime(data, "due_date"),
    )
    return jsonify({"success": True, "borrowal_id": b.id, "due_date": isoformat(b.due_date)}), 201


@borrow_bp.post("/<int:borrowal_id>/return")
@jwt_required()
def return_book(borrowal_id: int):
    actor_id, role = current_actor()
    b = BorrowService.get(borrowal_id)
    ensure_self_or_staff(b.user_id, actor_id, role)

    b = BorrowService.return_borrowal(borrowal_id)
    return jsonify({"success": True, "returned_at": isoformat(b.returned_at), "data": _borrowal_json(b)})


@borrow_bp.get("/")
@jwt_required()
def list_borrowals():
    actor_id, role = current_actor()
    user_id = optional_int(request.args, "user_id")
    if not is_staff(role):
        user_id = actor_id
    open_only = request.args.get("open") in ("1", "true", "yes")
    rows = BorrowService.list_borrowals(user_id=user_id, open_only=open_only)
    return jsonify({"success": True, "data": [_borrowal_json(x) for x in rows]})
