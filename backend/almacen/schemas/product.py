from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ProductCreate(BaseModel):
    name: str
    code: str = ""
    description: str = ""
    category: str = ""
    price: float
    stock: int = 0


class ProductUpdate(BaseModel):
    name: str
    code: str = ""
    description: str = ""
    category: str = ""
    price: float
    stock: int


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    description: str
    category: str
    price: float
    stock: int
    image_url: str
    created_by_id: int | None
    created_by_name: str
    created_at: datetime
    updated_by_id: int | None = None
    updated_by_name: str | None = None
    updated_at: datetime | None = None
    deleted: bool
    deleted_by_id: int | None = None
    deleted_by_name: str | None = None
    deleted_at: datetime | None = None
