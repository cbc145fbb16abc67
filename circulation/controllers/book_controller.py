# circulation/controllers/book_controller.py

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from circulation.services.inventory_service import InventoryService
from circulation.services.reservation_service import ReservationService
from circulation.utils.decorators import staff_required

book_bp = Blueprint("books", __name__)


def _book_json(b):
    return {
        "id": b.id,
        "title": b.title,
        "author": b.author,
        "isbn": b.isbn,
        "quantity": b.quantity,
        "available": b.available,
        "status": b.status,
        "total_borrows": b.total_borrows,
    }


@book_bp.get("/")
def list_books():
    return jsonify({"success": True, "data": [_book_json(b) for b in InventoryService.list_books()]})


@book_bp.get("/<int:book_id>")
def get_book(book_id: int):
    return jsonify({"success": True, "data": _book_json(InventoryService.get_book(book_id))})


@book_bp.post("/")
@jwt_required()
@staff_required
def create_book():
    data = request.get_json(silent=True) or {}
    b = InventoryService.create_book(data)
    return jsonify({"success": True, "id": b.id, "data": _book_json(b)}), 201


@book_bp.put("/<int:book_id>/quantity")
@jwt_required()
@staff_required
def adjust_quantity(book_id: int):
    data = request.get_json(silent=True) or {}
    b = InventoryService.adjust_quantity(book_id, data.get("quantity"))
    return jsonify({"success": True, "data": _book_json(b)})


@book_bp.get("/<int:book_id>/audit")
@jwt_required()
@staff_required
def audit_book(book_id: int):
    return jsonify({"success": True, "data": InventoryService.audit(book_id)})


@book_bp.get("/<int:book_id>/queue")
@jwt_required()
def book_queue(book_id: int):
    queue = ReservationService.queue_for_book(book_id)
    return jsonify({"success": True, "data": [
        {"id": r.id, "user_id": r.user_id, "position": r.position} for r in queue
    ]})
