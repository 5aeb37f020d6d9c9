"""Typed errors raised by the inventory services.

Every error carries the HTTP status it maps to and a short machine-readable
code; ``main`` installs a single handler that renders them.
"""


class InventoryError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """Malformed or out-of-range input (negative price, quantity <= 0)."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(InventoryError):
    status_code = 401
    code = "authentication_error"


class AuthorizationError(InventoryError):
    """The caller's role does not allow the requested operation."""

    status_code = 403
    code = "authorization_error"

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class NotFoundError(InventoryError):
    status_code = 404
    code = "not_found"

    def __init__(self, message: str, resource: str = "", resource_id: int | None = None) -> None:
        super().__init__(message)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(InventoryError):
    """A concurrent write could not be serialized after the internal retries."""

    status_code = 409
    code = "conflict"


class DependencyError(InventoryError):
    """Storage backend or identity provider unavailable."""

    status_code = 503
    code = "dependency_unavailable"
