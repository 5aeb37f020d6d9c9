from almacen.models.audit import AuditLog
from almacen.models.movement import Movement, MovementType
from almacen.models.product import Product
from almacen.models.user import User

__all__ = [
    "AuditLog",
    "Movement",
    "MovementType",
    "Product",
    "User",
]
