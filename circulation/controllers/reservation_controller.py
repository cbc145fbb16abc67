# circulation/controllers/reservation_controller.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.reservation_service import ReservationService
from circulation.utils.auth import current_actor, ensure_self_or_staff, is_staff
from circulation.utils.clock import isoformat
from circulation.utils.decorators import staff_required
from circulation.utils.payload import require_int, optional_int

reservation_bp = Blueprint("reservations", __name__)


def _reservation_json(r):
    return {
        "id": r.id,
        "book_id": r.book_id,
        "book_title": r.book.title if r.book else None,
        "user_id": r.user_id,
        "status": r.status,
        "position": r.position,
        "notified_at": isoformat(r.notified_at),
        "expires_at": isoformat(r.expires_at),
        "borrowal_id": r.borrowal_id,
        "created_at": isoformat(r.created_at),
    }


@reservation_bp.get("/")
@jwt_required()
def list_reservations():
    actor_id, role = current_actor()
    user_id = optional_int(request.args, "user_id")
    if not is_staff(role):
        user_id = actor_id
    rows = ReservationService.list_reservations(user_id=user_id, status=request.args.get("status"))
    return jsonify({"success": True, "data": [_reservation_json(r) for r in rows]})


@reservation_bp.post("/")
@jwt_required()
def create_reservation():
    actor_id, role = current_actor()
    data = request.get_json(silent=True) or {}

    book_id = require_int(data, "book_id")
    user_id = optional_int(data, "user_id", default=actor_id)
    ensure_self_or_staff(user_id, actor_id, role)

    r = ReservationService.create_reservation(book_id, user_id)
    return jsonify({"success": True, "id": r.id, "position": r.position, "data": _reservation_json(r)}), 201


@reservation_bp.post("/<int:reservation_id>/cancel")
@jwt_required()
def cancel_reservation(reservation_id: int):
    actor_id, role = current_actor()
    data = request.get_json(silent=True) or {}

    r = ReservationService.get(reservation_id)
    ensure_self_or_staff(r.user_id, actor_id, role)

    r = ReservationService.cancel(reservation_id, data.get("reason"))
    return jsonify({"success": True, "data": _reservation_json(r)})


@reservation_bp.post("/<int:reservation_id>/fulfill")
@jwt_required()
@staff_required
def fulfill_reservation(reservation_id: int):
    actor_id, _role = current_actor()
    r, b = ReservationService.fulfill(reservation_id, processed_by=actor_id)
    return jsonify({
        "success": True,
        "data": _reservation_json(r),
        "borrowal_id": b.id,
        "due_date": isoformat(b.due_date),
    })
