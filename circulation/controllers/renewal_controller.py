# circulation/controllers/renewal_controller.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.borrow_service import BorrowService
from circulation.services.renewal_service import RenewalService
from circulation.utils.auth import current_actor, ensure_self_or_staff, is_staff
from circulation.utils.clock import isoformat
from circulation.utils.decorators import staff_required
from circulation.utils.payload import require_int, optional_int

renewal_bp = Blueprint("renewals", __name__)


def _renewal_json(r):
    return {
        "id": r.id,
        "borrowal_id": r.borrowal_id,
        "user_id": r.user_id,
        "current_due_date": isoformat(r.current_due_date),
        "requested_days": r.requested_days,
        "new_due_date": isoformat(r.new_due_date),
        "status": r.status,
        "processed_by": r.processed_by,
        "processed_at": isoformat(r.processed_at),
        "rejection_reason": r.rejection_reason,
    }


@renewal_bp.get("/")
@jwt_required()
def list_renewals():
    actor_id, role = current_actor()
    user_id = optional_int(request.args, "user_id")
    if not is_staff(role):
        user_id = actor_id
    rows = RenewalService.list_renewals(user_id=user_id, status=request.args.get("status"))
    return jsonify({"success": True, "data": [_renewal_json(r) for r in rows]})


@renewal_bp.post("/")
@jwt_required()
def request_renewal():
    actor_id, role = current_actor()
    data = request.get_json(silent=True) or {}

    borrowal_id = require_int(data, "borrowal_id")
    ensure_self_or_staff(BorrowService.get(borrowal_id).user_id, actor_id, role)

    r = RenewalService.request_renewal(borrowal_id, optional_int(data, "requested_days"))
    return jsonify({"success": True, "id": r.id, "data": _renewal_json(r)}), 201


@renewal_bp.post("/<int:renewal_id>/approve")
@jwt_required()
@staff_required
def approve_renewal(renewal_id: int):
    actor_id, _role = current_actor()
    r = RenewalService.approve(renewal_id, processed_by=actor_id)
    return jsonify({"success": True, "new_due_date": isoformat(r.new_due_date), "data": _renewal_json(r)})


@renewal_bp.post("/<int:renewal_id>/reject")
@jwt_required()
@staff_required
def reject_renewal(renewal_id: int):
    actor_id, _role = current_actor()
    data = request.get_json(silent=True) or {}
    r = RenewalService.reject(renewal_id, processed_by=actor_id, reason=data.get("reason"))
    return jsonify({"success": True, "data": _renewal_json(r)})
