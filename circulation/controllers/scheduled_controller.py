# circulation/controllers/scheduled_controller.py
import hmac

from flask import Blueprint, current_app, jsonify, request

from circulation.tasks.expiration_sweep import run_sweep
from circulation.tasks.overdue_check import run_overdue_check

scheduled_bp = Blueprint("scheduled", __name__)


def _cron_authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET") or ""
    if not secret:
        return False
    header = request.headers.get("Authorization", "")
    return hmac.compare_digest(header, f"Bearer {secret}")


@scheduled_bp.post("/sweep")
def cron_sweep():
    if not _cron_authorized():
        return jsonify({"success": False, "message": "Unauthorized"}), 401
    return jsonify({"success": True, "data": run_sweep()})


@scheduled_bp.post("/overdue-check")
def cron_overdue_check():
    if not _cron_authorized():
        return jsonify({"success": False, "message": "Unauthorized"}), 401
    return jsonify({"success": True, "data": run_overdue_check()})
