from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.notification_service import NotificationService
from circulation.utils.auth import current_actor
from circulation.utils.clock import isoformat

notif_bp = Blueprint("notifications", __name__)


@notif_bp.get("/")
@jwt_required()
def my_notifications():
    user_id, _role = current_actor()
    unread_only = request.args.get("unread") in ("1", "true", "yes")
    rows = NotificationService.list_for_user(user_id, unread_only=unread_only)
    return jsonify({"success": True, "data": [
        {
            "id": n.id,
            "kind": n.kind,
            "message": n.message,
            "payload": n.payload,
            "is_read": n.is_read,
            "created_at": isoformat(n.created_at),
        } for n in rows
    ]})


@notif_bp.post("/mark-all-read")
@jwt_required()
def mark_all_read():
    user_id, _role = current_actor()
    count = NotificationService.mark_all_read(user_id)
    return jsonify({"success": True, "updated": count})
