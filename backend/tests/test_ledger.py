import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from almacen.core.errors import ConflictError, DependencyError, NotFoundError, ValidationError
from almacen.models.movement import Movement, MovementType
from almacen.schemas.product import ProductUpdate
from almacen.services import catalog, ledger
from almacen.services.concurrency import is_lock_contention


def movement_count(db, product_id=None):
    query = select(func.count(Movement.id))
    if product_id is not None:
        query = query.where(Movement.product_id == product_id)
    return db.scalar(query)


@pytest.mark.parametrize(
    "initial,sequence,expected",
    [
        (0, [("ENTRADA", 5), ("SALIDA", 2), ("ENTRADA", 1)], 4),
        (10, [("SALIDA", 3), ("SALIDA", 3), ("ENTRADA", 2)], 6),
        (2, [("SALIDA", 5)], 0),
        (2, [("SALIDA", 5), ("ENTRADA", 4)], 4),
    ],
)
def test_stock_follows_movement_sequence(db, make_product, cashier, initial, sequence, expected):
    product = make_product(stock=initial)

    for movement_type, quantity in sequence:
        ledger.register_movement(db, product.id, movement_type, quantity, cashier.id, cashier.full_name)

    assert catalog.get_product(db, product.id).stock == expected
    assert movement_count(db, product.id) == len(sequence)


def test_register_snapshots_names(db, make_product, cashier, manager):
    product = make_product(name="Yogur", stock=3)

    movement = ledger.register_movement(db, product.id, MovementType.ENTRADA, 2, cashier.id, cashier.full_name)
    catalog.update_product(
        db, product.id, ProductUpdate(name="Yogur griego", price=1, stock=5), manager.id, manager.full_name
    )

    stored = ledger.get_movement(db, movement.id)
    assert stored.product_name == "Yogur"
    assert stored.user_id == cashier.id
    assert stored.user_name == "Carla Cajera"
    assert stored.movement_type == "ENTRADA"
    assert stored.deleted is False


@pytest.mark.parametrize("quantity", [0, -3])
def test_register_rejects_non_positive_quantity(db, make_product, cashier, quantity):
    product = make_product(stock=5)

    with pytest.raises(ValidationError):
        ledger.register_movement(db, product.id, MovementType.SALIDA, quantity, cashier.id, cashier.full_name)

    assert movement_count(db) == 0
    assert catalog.get_product(db, product.id).stock == 5


def test_register_rejects_unknown_type(db, make_product, cashier):
    product = make_product()
    with pytest.raises(ValidationError):
        ledger.register_movement(db, product.id, "AJUSTE", 1, cashier.id, cashier.full_name)


def test_register_missing_product(db, cashier):
    with pytest.raises(NotFoundError):
        ledger.register_movement(db, 999, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)
    assert movement_count(db) == 0


def test_register_is_atomic_when_stock_adjustment_fails(db, make_product, cashier, monkeypatch):
    product = make_product(stock=10)

    def failing_adjust(*args, **kwargs):
        raise RuntimeError("storage failure")

    monkeypatch.setattr(ledger, "adjust_stock", failing_adjust)

    with pytest.raises(RuntimeError):
        ledger.register_movement(db, product.id, MovementType.SALIDA, 4, cashier.id, cashier.full_name)

    assert movement_count(db) == 0
    assert catalog.get_product(db, product.id).stock == 10


def test_lock_conflicts_are_retried_then_reported(db, make_product, cashier, monkeypatch):
    product = make_product(stock=10)
    calls = []

    def locked_adjust(*args, **kwargs):
        calls.append(1)
        raise OperationalError("UPDATE products", {}, Exception("database is locked"))

    monkeypatch.setattr(ledger, "adjust_stock", locked_adjust)
    monkeypatch.setattr("almacen.services.concurrency.time.sleep", lambda _: None)

    with pytest.raises(ConflictError):
        ledger.register_movement(db, product.id, MovementType.SALIDA, 1, cashier.id, cashier.full_name)

    assert len(calls) == 3
    assert movement_count(db) == 0
    assert catalog.get_product(db, product.id).stock == 10


def test_transient_lock_conflict_succeeds_on_retry(db, make_product, cashier, monkeypatch):
    product = make_product(stock=10)
    real_adjust = ledger.adjust_stock
    calls = []

    def flaky_adjust(session, product_id, delta):
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))
        return real_adjust(session, product_id, delta)

    monkeypatch.setattr(ledger, "adjust_stock", flaky_adjust)
    monkeypatch.setattr("almacen.services.concurrency.time.sleep", lambda _: None)

    ledger.register_movement(db, product.id, MovementType.SALIDA, 4, cashier.id, cashier.full_name)

    assert len(calls) == 2
    assert movement_count(db, product.id) == 1
    assert catalog.get_product(db, product.id).stock == 6


def test_unreachable_database_is_not_retried(db, make_product, cashier, monkeypatch):
    product = make_product(stock=10)
    calls = []
    sleeps = []

    def refused_adjust(*args, **kwargs):
        calls.append(1)
        raise OperationalError(
            "UPDATE products", {}, Exception("could not connect to server: Connection refused")
        )

    monkeypatch.setattr(ledger, "adjust_stock", refused_adjust)
    monkeypatch.setattr("almacen.services.concurrency.time.sleep", sleeps.append)

    with pytest.raises(DependencyError):
        ledger.register_movement(db, product.id, MovementType.SALIDA, 1, cashier.id, cashier.full_name)

    assert len(calls) == 1
    assert sleeps == []
    assert movement_count(db) == 0
    assert catalog.get_product(db, product.id).stock == 10


def test_invalidated_connection_is_reported_as_dependency_error(db, make_product, cashier, monkeypatch):
    product = make_product(stock=10)

    def dropped_adjust(*args, **kwargs):
        raise OperationalError(
            "UPDATE products", {}, Exception("database is locked"), connection_invalidated=True
        )

    monkeypatch.setattr(ledger, "adjust_stock", dropped_adjust)
    monkeypatch.setattr("almacen.services.concurrency.time.sleep", lambda _: None)

    with pytest.raises(DependencyError):
        ledger.register_movement(db, product.id, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)
    assert movement_count(db) == 0


def test_concurrent_exits_clamp_at_zero(session_factory, make_product, cashier):
    product = make_product(stock=10)
    product_id, actor_id, actor_name = product.id, cashier.id, cashier.full_name
    barrier = threading.Barrier(3)

    def exit_four():
        session = session_factory()
        try:
            barrier.wait(timeout=10)
            movement = ledger.register_movement(
                session, product_id, MovementType.SALIDA, 4, actor_id, actor_name
            )
            return movement.id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=3) as pool:
        futures = [pool.submit(exit_four) for _ in range(3)]
        ids = [future.result(timeout=60) for future in futures]

    assert len(set(ids)) == 3
    check = session_factory()
    try:
        assert catalog.get_product(check, product_id).stock == 0
        assert movement_count(check, product_id) == 3
    finally:
        check.close()


def test_soft_delete_movement_does_not_reverse_stock(db, make_product, cashier, manager):
    product = make_product(stock=10)
    movement = ledger.register_movement(db, product.id, MovementType.SALIDA, 4, cashier.id, cashier.full_name)
    assert catalog.get_product(db, product.id).stock == 6

    deleted = ledger.soft_delete_movement(db, movement.id, manager.id, manager.full_name)

    assert deleted.deleted is True
    assert deleted.deleted_by_id == manager.id
    assert deleted.deleted_by_name == "Mario Manager"
    assert deleted.deleted_at is not None
    assert catalog.get_product(db, product.id).stock == 6


def test_soft_delete_movement_is_idempotent(db, make_product, cashier, admin, manager):
    product = make_product()
    movement = ledger.register_movement(db, product.id, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)

    ledger.soft_delete_movement(db, movement.id, manager.id, manager.full_name)
    again = ledger.soft_delete_movement(db, movement.id, admin.id, admin.full_name)

    assert again.deleted_by_id == manager.id


def test_soft_delete_missing_movement(db, manager):
    with pytest.raises(NotFoundError):
        ledger.soft_delete_movement(db, 77, manager.id, manager.full_name)


def test_listing_is_newest_first_and_hides_deleted(db, make_product, cashier, manager):
    coffee = make_product(name="Cafe")
    tea = make_product(name="Te")
    first = ledger.register_movement(db, coffee.id, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)
    second = ledger.register_movement(db, tea.id, MovementType.ENTRADA, 2, cashier.id, cashier.full_name)
    third = ledger.register_movement(db, coffee.id, MovementType.SALIDA, 1, cashier.id, cashier.full_name)
    ledger.soft_delete_movement(db, first.id, manager.id, manager.full_name)

    assert [m.id for m in ledger.list_movements(db)] == [third.id, second.id]
    assert [m.id for m in ledger.list_movements(db, include_deleted=True)] == [third.id, second.id, first.id]
    assert [m.id for m in ledger.list_movements_for_product(db, coffee.id)] == [third.id]
    assert [m.id for m in ledger.list_movements_for_product(db, coffee.id, include_deleted=True)] == [
        third.id,
        first.id,
    ]
    assert [m.id for m in ledger.list_deleted_movements(db)] == [first.id]
    assert ledger.list_deleted_movements(db, product_id=tea.id) == []


def test_list_movements_date_window(db, make_product, cashier):
    product = make_product()
    movement = ledger.register_movement(db, product.id, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)
    created = ledger.get_movement(db, movement.id).created_at

    assert [m.id for m in ledger.list_movements(db, date_from=created - timedelta(minutes=1))] == [movement.id]
    assert ledger.list_movements(db, date_to=created - timedelta(minutes=1)) == []


def test_product_history_honours_date_window(db, make_product, cashier):
    product = make_product()
    movement = ledger.register_movement(db, product.id, MovementType.ENTRADA, 1, cashier.id, cashier.full_name)
    created = ledger.get_movement(db, movement.id).created_at

    in_window = ledger.list_movements_for_product(db, product.id, date_from=created - timedelta(minutes=1))
    assert [m.id for m in in_window] == [movement.id]
    assert ledger.list_movements_for_product(db, product.id, date_to=created - timedelta(minutes=1)) == []


class _DeadlockDetected(Exception):
    pgcode = "40P01"


@pytest.mark.parametrize(
    "error,expected",
    [
        (OperationalError("UPDATE products", {}, Exception("database is locked")), True),
        (OperationalError("UPDATE products", {}, _DeadlockDetected("ERROR")), True),
        (OperationalError("UPDATE products", {}, Exception("Lock wait timeout exceeded")), True),
        (OperationalError("UPDATE products", {}, Exception("server closed the connection unexpectedly")), False),
        (OperationalError("UPDATE products", {}, Exception("could not connect to server")), False),
    ],
)
def test_lock_contention_classification(error, expected):
    assert is_lock_contention(error) is expected
