"""
Circulation error taxonomy.

Every error is a ValueError so callers that only care about "the request
was refused" can keep catching ValueError. Each class carries an HTTP status
and a short machine code; the message is meant for humans.
"""

from __future__ import annotations


class CirculationError(ValueError):
    status_code = 400
    code = "circulation_error"
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(CirculationError):
    status_code = 404
    code = "not_found"
    default_message = "Record not found"


class Forbidden(CirculationError):
    status_code = 403
    code = "forbidden"
    default_message = "You are not allowed to do this"


class InvalidInput(CirculationError):
    code = "invalid_input"
    default_message = "Invalid input"


class Conflict(CirculationError):
    status_code = 409
    code = "conflict"
    default_message = "A matching request already exists"


class AlreadyReserved(Conflict):
    code = "already_reserved"
    default_message = "You already have an open reservation for this book"


class AlreadyBorrowed(Conflict):
    code = "already_borrowed"
    default_message = "This reader already holds a copy of this book"


class OutOfStock(CirculationError):
    status_code = 409
    code = "out_of_stock"
    default_message = "This book has no copies available, join the queue instead"


class InvalidState(CirculationError):
    code = "invalid_state"
    default_message = "Action not allowed in the current state"


class AlreadyProcessed(InvalidState):
    code = "already_processed"
    default_message = "This request has already been processed"


class AlreadyReturned(AlreadyProcessed):
    code = "already_returned"
    default_message = "This book has already been returned"


class BookAvailable(InvalidState):
    code = "book_available"
    default_message = "This book is available, book a pickup appointment instead"


class LimitReached(InvalidState):
    code = "limit_reached"
    default_message = "Borrowing limit reached, return a book first"


class TooLate(InvalidState):
    code = "too_late"
    default_message = "The pickup window has passed"
