"""Movement ledger.

Append-only journal of stock entries (ENTRADA) and exits (SALIDA). Each
registered movement inserts its record and adjusts the product's stock in the
same transaction, so a reader never sees one without the other.

Soft-deleting a movement is an audit annotation. It does not reverse the
stock change the movement applied when it was registered.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from almacen.core.config import get_settings
from almacen.core.errors import NotFoundError, ValidationError
from almacen.models.movement import Movement, MovementType
from almacen.services.catalog import adjust_stock, get_product
from almacen.services.concurrency import run_with_retry


logger = logging.getLogger(__name__)


def _signed_delta(movement_type: MovementType, quantity: int) -> int:
    return quantity if movement_type is MovementType.ENTRADA else -quantity


def register_movement(
    db: Session,
    product_id: int,
    movement_type: MovementType | str,
    quantity: int,
    actor_id: int,
    actor_name: str,
) -> Movement:
    try:
        movement_type = MovementType(movement_type)
    except ValueError as exc:
        raise ValidationError("Tipo de movimiento invalido") from exc
    if quantity <= 0:
        raise ValidationError("La cantidad debe ser mayor a cero")

    settings = get_settings()

    def _apply() -> Movement:
        try:
            product = get_product(db, product_id)
            movement = Movement(
                product_id=product.id,
                product_name=product.name,
                user_id=actor_id,
                user_name=actor_name,
                movement_type=movement_type.value,
                quantity=quantity,
                created_at=datetime.now(timezone.utc),
            )
            db.add(movement)
            db.flush()

            updated = adjust_stock(db, product.id, _signed_delta(movement_type, quantity))
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(movement)
        logger.info(
            "Movement %s registered: %s %s of product %s by user %s, stock now %s",
            movement.id,
            movement.movement_type,
            quantity,
            product_id,
            actor_id,
            updated.stock,
        )
        return movement

    return run_with_retry(
        db,
        _apply,
        attempts=settings.stock_retry_attempts,
        backoff_base=settings.stock_retry_backoff,
    )


def get_movement(db: Session, movement_id: int) -> Movement:
    movement = db.scalar(select(Movement).where(Movement.id == movement_id))
    if not movement:
        raise NotFoundError("Movimiento no encontrado", resource="movement", resource_id=movement_id)
    return movement


def soft_delete_movement(db: Session, movement_id: int, actor_id: int, actor_name: str) -> Movement:
    movement = get_movement(db, movement_id)
    if movement.deleted:
        return movement

    movement.deleted = True
    movement.deleted_by_id = actor_id
    movement.deleted_by_name = actor_name
    movement.deleted_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(movement)
    logger.info("Movement %s soft-deleted by user %s (stock untouched)", movement.id, actor_id)
    return movement


def _within_window(query, date_from: datetime | None, date_to: datetime | None):
    if date_from is not None:
        query = query.where(Movement.created_at >= date_from)
    if date_to is not None:
        query = query.where(Movement.created_at < date_to)
    return query


def list_movements_for_product(
    db: Session,
    product_id: int,
    include_deleted: bool = False,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Movement]:
    query = select(Movement).where(Movement.product_id == product_id)
    if not include_deleted:
        query = query.where(Movement.deleted.is_(False))
    query = _within_window(query, date_from, date_to)
    return list(db.scalars(query.order_by(Movement.created_at.desc(), Movement.id.desc())).all())


def list_movements(
    db: Session,
    include_deleted: bool = False,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> list[Movement]:
    query = select(Movement)
    if not include_deleted:
        query = query.where(Movement.deleted.is_(False))
    query = _within_window(query, date_from, date_to)
    return list(db.scalars(query.order_by(Movement.created_at.desc(), Movement.id.desc())).all())


def list_deleted_movements(db: Session, product_id: int | None = None) -> list[Movement]:
    query = select(Movement).where(Movement.deleted.is_(True))
    if product_id is not None:
        query = query.where(Movement.product_id == product_id)
    return list(db.scalars(query.order_by(Movement.deleted_at.desc(), Movement.id.desc())).all())
