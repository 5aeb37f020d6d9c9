from datetime import datetime

from pydantic import BaseModel, ConfigDict

from almacen.services.rbac import Role


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    role: str
    photo_url: str = ""
    is_active: bool = True
    created_at: datetime | None = None


class CurrentUserRead(UserRead):
    permissions: list[str] = []


class UserCreateRequest(BaseModel):
    email: str
    password: str
    full_name: str = ""
    role: Role = Role.CASHIER


class RoleUpdateRequest(BaseModel):
    role: Role
