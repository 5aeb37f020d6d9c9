from datetime import datetime

from pydantic import BaseModel, ConfigDict

from almacen.models.movement import MovementType


class MovementCreate(BaseModel):
    product_id: int
    movement_type: MovementType
    quantity: int


class MovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    movement_type: MovementType
    quantity: int
    created_at: datetime
    user_id: int | None
    user_name: str
    deleted: bool
    deleted_by_id: int | None = None
    deleted_by_name: str | None = None
    deleted_at: datetime | None = None
