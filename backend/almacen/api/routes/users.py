from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from almacen.api.deps import log_action, require_operation
from almacen.db.session import get_db
from almacen.models.user import User
from almacen.schemas.user import RoleUpdateRequest, UserCreateRequest, UserRead
from almacen.services import directory
from almacen.services.rbac import Operation


router = APIRouter()


@router.get("", response_model=list[UserRead])
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.USERS_MANAGE)),
) -> list[UserRead]:
    return [UserRead.model_validate(row) for row in directory.list_users(db)]


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.USERS_MANAGE)),
) -> UserRead:
    log_action(db, current_user.id, "create", "user", f"Usuario {payload.email} con rol {payload.role.value}")
    user = directory.register_user(db, payload.email, payload.password, payload.full_name, role=payload.role)
    return UserRead.model_validate(user)


@router.put("/{user_id}/role", response_model=UserRead)
def update_role(
    user_id: int,
    payload: RoleUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.USERS_MANAGE)),
) -> UserRead:
    log_action(db, current_user.id, "role", "user", f"Usuario {user_id} -> {payload.role.value}")
    user = directory.update_role(db, user_id, payload.role)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.USERS_MANAGE)),
) -> Response:
    log_action(db, current_user.id, "delete", "user", f"Usuario {user_id} eliminado")
    directory.delete_user(db, user_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
