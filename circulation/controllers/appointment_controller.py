# circulation/controllers/appointment_controller.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.appointment_service import AppointmentService
from circulation.tasks.expiration_sweep import run_sweep
from circulation.utils.auth import current_actor, ensure_self_or_staff, is_staff
from circulation.utils.clock import isoformat
from circulation.utils.decorators import staff_required
from circulation.utils.payload import require_int, optional_int, optional_datetime
from circulation.errors import InvalidInput

appointment_bp = Blueprint("appointments", __name__)


def _appointment_json(a):
    return {
        "id": a.id,
        "book_id": a.book_id,
        "book_title": a.book.title if a.book else None,
        "user_id": a.user_id,
        "pickup_time": isoformat(a.pickup_time),
        "status": a.status,
        "confirmed_at": isoformat(a.confirmed_at),
        "confirmed_by": a.confirmed_by,
        "borrowal_id": a.borrowal_id,
        "cancellation_reason": a.cancellation_reason,
        "created_at": isoformat(a.created_at),
    }


@appointment_bp.get("/")
@jwt_required()
def list_appointments():
    actor_id, role = current_actor()
    user_id = optional_int(request.args, "user_id")
    if not is_staff(role):
        user_id = actor_id
    rows = AppointmentService.list_appointments(user_id=user_id, status=request.args.get("status"))
    return jsonify({"success": True, "data": [_appointment_json(a) for a in rows]})


@appointment_bp.post("/")
@jwt_required()
def create_appointment():
    actor_id, role = current_actor()
    data = request.get_json(silent=True) or {}

    book_id = require_int(data, "book_id")
    user_id = optional_int(data, "user_id", default=actor_id)
    ensure_self_or_staff(user_id, actor_id, role)

    pickup_time = optional_datetime(data, "pickup_time")
    if pickup_time is None:
        raise InvalidInput("pickup_time is required")

    a = AppointmentService.create_appointment(
        book_id, user_id, pickup_time, data.get("agreed_to_terms")
    )
    return jsonify({"success": True, "id": a.id, "data": _appointment_json(a)}), 201


@appointment_bp.post("/<int:appointment_id>/confirm")
@jwt_required()
@staff_required
def confirm_appointment(appointment_id: int):
    actor_id, _role = current_actor()
    a, b = AppointmentService.confirm(appointment_id, confirmed_by=actor_id)
    return jsonify({
        "success": True,
        "data": _appointment_json(a),
        "borrowal_id": b.id,
        "due_date": isoformat(b.due_date),
    })


@appointment_bp.post("/<int:appointment_id>/cancel")
@jwt_required()
def cancel_appointment(appointment_id: int):
    actor_id, role = current_actor()
    data = request.get_json(silent=True) or {}

    a = AppointmentService.get(appointment_id)
    ensure_self_or_staff(a.user_id, actor_id, role)

    a = AppointmentService.cancel(appointment_id, data.get("reason"))
    return jsonify({"success": True, "data": _appointment_json(a)})


@appointment_bp.post("/sweep")
@jwt_required()
@staff_required
def sweep_now():
    # librarians run this when they open the confirmation view
    return jsonify({"success": True, "data": run_sweep()})
