from almacen.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from almacen.schemas.dashboard import DashboardStatsRead
from almacen.schemas.movement import MovementCreate, MovementRead
from almacen.schemas.product import ProductCreate, ProductRead, ProductUpdate
from almacen.schemas.user import CurrentUserRead, RoleUpdateRequest, UserCreateRequest, UserRead

__all__ = [
    "CurrentUserRead",
    "DashboardStatsRead",
    "LoginRequest",
    "MovementCreate",
    "MovementRead",
    "ProductCreate",
    "ProductRead",
    "ProductUpdate",
    "RegisterRequest",
    "RoleUpdateRequest",
    "TokenResponse",
    "UserCreateRequest",
    "UserRead",
]
