from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from almacen.models.movement import Movement
from almacen.models.product import Product
from almacen.services.catalog import list_products


@dataclass
class DashboardStats:
    total_products: int = 0
    deleted_products: int = 0
    total_movements: int = 0
    deleted_movements: int = 0
    total_stock: int = 0
    low_stock_threshold: int = 5
    low_stock_count: int = 0
    low_stock_products: list[Product] = field(default_factory=list)
    total_inventory_value: float = 0.0
    recent_products: list[Product] = field(default_factory=list)


def compute_stats(db: Session, low_stock_threshold: int = 5, recent_limit: int = 5) -> DashboardStats:
    """
    Read-only projection over the current catalog and ledger.

    Each figure comes from its own query, so the result is a best-effort
    view rather than a single consistent snapshot.
    """
    products = list_products(db)
    low_stock = [p for p in products if p.stock <= low_stock_threshold]
    recent = sorted(products, key=lambda p: (p.created_at, p.id), reverse=True)[:recent_limit]

    total_movements = db.scalar(select(func.count(Movement.id)).where(Movement.deleted.is_(False))) or 0
    deleted_movements = db.scalar(select(func.count(Movement.id)).where(Movement.deleted.is_(True))) or 0
    deleted_products = db.scalar(select(func.count(Product.id)).where(Product.deleted.is_(True))) or 0

    return DashboardStats(
        total_products=len(products),
        deleted_products=deleted_products,
        total_movements=total_movements,
        deleted_movements=deleted_movements,
        total_stock=sum(p.stock for p in products),
        low_stock_threshold=low_stock_threshold,
        low_stock_count=len(low_stock),
        low_stock_products=sorted(low_stock, key=lambda p: (p.stock, p.name)),
        total_inventory_value=round(sum(p.price * p.stock for p in products), 2),
        recent_products=recent,
    )

