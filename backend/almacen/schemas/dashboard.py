from pydantic import BaseModel, ConfigDict

from almacen.schemas.product import ProductRead


class DashboardStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_products: int
    deleted_products: int
    total_movements: int
    deleted_movements: int
    total_stock: int
    low_stock_threshold: int
    low_stock_count: int
    low_stock_products: list[ProductRead]
    total_inventory_value: float
    recent_products: list[ProductRead]
