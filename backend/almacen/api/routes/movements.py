from datetime import datetime

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from almacen.api.deps import log_action, require_operation
from almacen.db.session import get_db
from almacen.models.user import User
from almacen.schemas.movement import MovementCreate, MovementRead
from almacen.services import ledger
from almacen.services.rbac import Operation


router = APIRouter()


@router.get("", response_model=list[MovementRead])
def list_movements(
    product_id: int | None = None,
    include_deleted: bool = False,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> list[MovementRead]:
    if product_id is not None:
        rows = ledger.list_movements_for_product(
            db, product_id, include_deleted=include_deleted, date_from=date_from, date_to=date_to
        )
    else:
        rows = ledger.list_movements(db, include_deleted=include_deleted, date_from=date_from, date_to=date_to)
    return [MovementRead.model_validate(row) for row in rows]


@router.get("/deleted", response_model=list[MovementRead])
def list_deleted_movements(
    product_id: int | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.MOVEMENTS_DELETE)),
) -> list[MovementRead]:
    return [MovementRead.model_validate(row) for row in ledger.list_deleted_movements(db, product_id)]


@router.post("", response_model=MovementRead, status_code=status.HTTP_201_CREATED)
def register_movement(
    payload: MovementCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.MOVEMENTS_WRITE)),
) -> MovementRead:
    log_action(
        db,
        current_user.id,
        "register",
        "movement",
        f"{payload.movement_type.value} {payload.quantity} producto {payload.product_id}",
    )
    movement = ledger.register_movement(
        db,
        payload.product_id,
        payload.movement_type,
        payload.quantity,
        current_user.id,
        current_user.full_name,
    )
    return MovementRead.model_validate(movement)


@router.get("/{movement_id}", response_model=MovementRead)
def get_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> MovementRead:
    return MovementRead.model_validate(ledger.get_movement(db, movement_id))


@router.delete("/{movement_id}", status_code=status.HTTP_204_NO_CONTENT)
def soft_delete_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.MOVEMENTS_DELETE)),
) -> Response:
    log_action(db, current_user.id, "delete", "movement", f"Movimiento {movement_id} borrado logico")
    ledger.soft_delete_movement(db, movement_id, current_user.id, current_user.full_name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
