# circulation/controllers/penalty_controller.py

from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from circulation.models.penalty import Penalty
from circulation.models.borrowal import Borrowal
from circulation.utils.auth import current_actor
from circulation.utils.decorators import staff_required

penalty_bp = Blueprint("penalties", __name__)


def _penalty_json(p):
    return {
        "id": p.id,
        "borrowal_id": p.borrowal_id,
        "days_overdue": p.days_overdue,
        "daily_fee": float(p.daily_fee),
        "amount": float(p.amount),
        "is_paid": bool(p.is_paid),
        "created_at": p.created_at.isoformat(),
    }


@penalty_bp.get("/my")
@jwt_required()
def my_penalties():
    user_id, _role = current_actor()

    # filter through the borrowal owner
    rows = (
        Penalty.query
        .join(Borrowal, Penalty.borrowal_id == Borrowal.id)
        .filter(Borrowal.user_id == user_id)
        .order_by(Penalty.id.desc())
        .all()
    )
    return jsonify({"success": True, "data": [_penalty_json(p) for p in rows]})


@penalty_bp.get("/all")
@jwt_required()
@staff_required
def all_penalties():
    rows = Penalty.query.order_by(Penalty.id.desc()).all()
    return jsonify({"success": True, "data": [_penalty_json(p) for p in rows]})
