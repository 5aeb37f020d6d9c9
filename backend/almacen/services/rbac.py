from __future__ import annotations

import enum

from almacen.core.errors import AuthorizationError


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"


class Operation(str, enum.Enum):
    PRODUCTS_WRITE = "products:write"
    PRODUCTS_DELETE = "products:delete"
    MOVEMENTS_WRITE = "movements:write"
    MOVEMENTS_DELETE = "movements:delete"
    CATALOG_VIEW = "catalog:view"
    USERS_MANAGE = "users:manage"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


ROLE_PERMISSIONS: dict[Role, frozenset[Operation]] = {
    Role.ADMIN: frozenset(
        {
            Operation.PRODUCTS_WRITE,
            Operation.PRODUCTS_DELETE,
            Operation.MOVEMENTS_WRITE,
            Operation.MOVEMENTS_DELETE,
            Operation.CATALOG_VIEW,
            Operation.USERS_MANAGE,
        }
    ),
    Role.MANAGER: frozenset(
        {
            Operation.PRODUCTS_WRITE,
            Operation.MOVEMENTS_WRITE,
            Operation.MOVEMENTS_DELETE,
            Operation.CATALOG_VIEW,
        }
    ),
    Role.CASHIER: frozenset(
        {
            Operation.MOVEMENTS_WRITE,
            Operation.CATALOG_VIEW,
        }
    ),
}


def parse_role(raw: Role | str | None) -> Role | None:
    if isinstance(raw, Role):
        return raw
    if not raw:
        return None
    try:
        return Role(raw)
    except ValueError:
        return None


def authorize(role: Role | str | None, operation: Operation) -> Decision:
    """Pure table lookup. Missing or unknown roles are denied."""
    parsed = parse_role(role)
    if parsed is None:
        return Decision.DENY
    return Decision.ALLOW if operation in ROLE_PERMISSIONS[parsed] else Decision.DENY


def has_permission(role: Role | str | None, operation: Operation) -> bool:
    return authorize(role, operation) is Decision.ALLOW


def ensure_authorized(role: Role | str | None, operation: Operation) -> None:
    if not has_permission(role, operation):
        raise AuthorizationError("Permiso insuficiente", operation=operation.value)


def allowed_operations(role: Role | str | None) -> list[str]:
    parsed = parse_role(role)
    if parsed is None:
        return []
    return sorted(op.value for op in ROLE_PERMISSIONS[parsed])
