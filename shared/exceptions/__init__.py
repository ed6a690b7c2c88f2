"""Error taxonomy shared by every POS service."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class PosError(Exception):
    """Base exception for all order/stock errors."""
    kind = "error"

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["error"] = self.kind
        rv["message"] = self.message
        rv["status"] = "error"
        return rv


class ValidationError(PosError):
    """Malformed or incomplete input (empty draft, due order without customer...)."""
    kind = "validation_error"

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class NotFound(PosError):
    """Nonexistent order id, or an id that does not resolve to the expected status."""
    kind = "not_found"

    def __init__(self, message="Order not found", payload=None):
        super().__init__(message, 404, payload)


class InvalidState(PosError):
    """Operation is not legal for the order's current status."""
    kind = "invalid_state"

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class Conflict(PosError):
    """Lost a race on a non-idempotent transition."""
    kind = "conflict"

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


async def pos_error_handler(request: Request, exc: PosError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PosError, pos_error_handler)


__all__ = [
    "PosError",
    "ValidationError",
    "NotFound",
    "InvalidState",
    "Conflict",
    "register_error_handlers",
]
