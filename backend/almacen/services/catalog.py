"""Product catalog: product records, soft delete and the stock counter.

Stock is only ever changed in place through :func:`adjust_stock`, which the
movement ledger calls inside its own transaction, or through a full product
edit by an administrator or manager.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

from almacen.core.errors import NotFoundError, ValidationError
from almacen.models.product import Product
from almacen.schemas.product import ProductCreate, ProductUpdate


logger = logging.getLogger(__name__)


def _validate_fields(name: str, price: float, stock: int) -> None:
    if not name.strip():
        raise ValidationError("El nombre es obligatorio")
    if not math.isfinite(price):
        raise ValidationError("El precio no es un numero valido")
    if price < 0:
        raise ValidationError("El precio no puede ser negativo")
    if stock < 0:
        raise ValidationError("El stock no puede ser negativo")


def _ensure_name_available(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = select(Product.id).where(Product.name == name, Product.deleted.is_(False))
    if exclude_id is not None:
        query = query.where(Product.id != exclude_id)
    if db.scalar(query.limit(1)) is not None:
        raise ValidationError("Ya existe un producto con ese nombre")


def get_product(db: Session, product_id: int) -> Product:
    product = db.scalar(select(Product).where(Product.id == product_id))
    if not product:
        raise NotFoundError("Producto no encontrado", resource="product", resource_id=product_id)
    return product


def list_products(
    db: Session,
    include_deleted: bool = False,
    search: str | None = None,
    category: str | None = None,
) -> list[Product]:
    query = select(Product)
    if not include_deleted:
        query = query.where(Product.deleted.is_(False))
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.where(or_(func.lower(Product.name).like(pattern), func.lower(Product.code).like(pattern)))
    if category:
        query = query.where(Product.category == category)
    return list(db.scalars(query.order_by(Product.name.asc(), Product.id.asc())).all())


def list_deleted_products(db: Session) -> list[Product]:
    rows = db.scalars(
        select(Product).where(Product.deleted.is_(True)).order_by(Product.deleted_at.desc(), Product.id.desc())
    ).all()
    return list(rows)


def create_product(db: Session, payload: ProductCreate, actor_id: int, actor_name: str) -> Product:
    _validate_fields(payload.name, payload.price, payload.stock)
    _ensure_name_available(db, payload.name.strip())

    now = datetime.now(timezone.utc)
    product = Product(
        name=payload.name.strip(),
        code=payload.code.strip(),
        description=payload.description,
        category=payload.category.strip(),
        price=payload.price,
        stock=payload.stock,
        created_by_id=actor_id,
        created_by_name=actor_name,
        created_at=now,
        deleted=False,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product %s created by user %s with stock %s", product.id, actor_id, product.stock)
    return product


def update_product(
    db: Session,
    product_id: int,
    payload: ProductUpdate,
    actor_id: int,
    actor_name: str,
) -> Product:
    _validate_fields(payload.name, payload.price, payload.stock)
    product = get_product(db, product_id)
    _ensure_name_available(db, payload.name.strip(), exclude_id=product.id)

    product.name = payload.name.strip()
    product.code = payload.code.strip()
    product.description = payload.description
    product.category = payload.category.strip()
    product.price = payload.price
    product.stock = payload.stock
    product.updated_by_id = actor_id
    product.updated_by_name = actor_name
    product.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(product)
    logger.info("Product %s updated by user %s", product.id, actor_id)
    return product


def soft_delete_product(db: Session, product_id: int, actor_id: int, actor_name: str) -> Product:
    product = get_product(db, product_id)
    if product.deleted:
        return product

    product.deleted = True
    product.deleted_by_id = actor_id
    product.deleted_by_name = actor_name
    product.deleted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(product)
    logger.info("Product %s soft-deleted by user %s", product.id, actor_id)
    return product


def restore_product(db: Session, product_id: int) -> Product:
    product = get_product(db, product_id)
    if not product.deleted:
        return product

    product.deleted = False
    product.deleted_by_id = None
    product.deleted_by_name = None
    product.deleted_at = None
    db.commit()
    db.refresh(product)
    logger.info("Product %s restored", product.id)
    return product


def set_product_image(db: Session, product_id: int, image_url: str) -> str:
    """Store a new image URL and return the one it replaced."""
    product = get_product(db, product_id)
    previous = product.image_url
    product.image_url = image_url
    db.commit()
    return previous


def adjust_stock(db: Session, product_id: int, delta: int) -> Product:
    """
    Apply ``delta`` to the product's stock as one atomic UPDATE.

    Decreases are floored at zero inside the statement, so concurrent
    writers serialize on the row and no update is lost. The caller owns
    the transaction: nothing is committed here.
    """
    new_stock = Product.stock + delta
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock=case((new_stock < 0, 0), else_=new_stock))
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        raise NotFoundError("Producto no encontrado", resource="product", resource_id=product_id)

    product = db.get(Product, product_id, populate_existing=True)
    if delta < 0 and product.stock == 0:
        logger.warning("Stock of product %s floored at zero after delta %s", product_id, delta)
    return product
