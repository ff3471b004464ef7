from __future__ import annotations


class DomainError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code

    def __str__(self) -> str:
        return self.message


class ValidationFailed(DomainError):
    """Malformed identifier, missing/invalid field or empty body."""

    status_code = 400
    code = "validation_error"


class BadRequest(DomainError):
    status_code = 400
    code = "bad_request"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


class Conflict(DomainError):
    status_code = 409
    code = "conflict"


class InsufficientStock(Conflict):
    code = "insufficient_stock"

    def __init__(self, *, product_id, name: str, available: int, requested: int):
        super().__init__(
            f"Not enough stock for {name}. Available: {available}, requested: {requested}"
        )
        self.product_id = product_id
        self.name = name
        self.available = int(available)
        self.requested = int(requested)


class UpstreamError(DomainError):
    """Payment gateway or other remote collaborator failed."""

    status_code = 502
    code = "upstream_error"
