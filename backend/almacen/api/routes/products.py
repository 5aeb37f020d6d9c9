from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from almacen.api.deps import log_action, require_operation
from almacen.core.config import get_settings
from almacen.db.session import get_db
from almacen.models.user import User
from almacen.schemas.movement import MovementRead
from almacen.schemas.product import ProductCreate, ProductRead, ProductUpdate
from almacen.services import catalog, ledger, storage
from almacen.services.rbac import Operation


router = APIRouter()
settings = get_settings()


@router.get("", response_model=list[ProductRead])
def list_products(
    include_deleted: bool = False,
    search: str | None = None,
    category: str | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> list[ProductRead]:
    rows = catalog.list_products(db, include_deleted=include_deleted, search=search, category=category)
    return [ProductRead.model_validate(row) for row in rows]


@router.get("/deleted", response_model=list[ProductRead])
def list_deleted_products(
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.PRODUCTS_DELETE)),
) -> list[ProductRead]:
    return [ProductRead.model_validate(row) for row in catalog.list_deleted_products(db)]


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.PRODUCTS_WRITE)),
) -> ProductRead:
    log_action(db, current_user.id, "create", "product", f"Producto {payload.name.strip()}")
    product = catalog.create_product(db, payload, current_user.id, current_user.full_name)
    return ProductRead.model_validate(product)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> ProductRead:
    return ProductRead.model_validate(catalog.get_product(db, product_id))


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.PRODUCTS_WRITE)),
) -> ProductRead:
    log_action(db, current_user.id, "update", "product", f"Producto {product_id} actualizado")
    product = catalog.update_product(db, product_id, payload, current_user.id, current_user.full_name)
    return ProductRead.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def soft_delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.PRODUCTS_DELETE)),
) -> Response:
    log_action(db, current_user.id, "delete", "product", f"Producto {product_id} borrado logico")
    catalog.soft_delete_product(db, product_id, current_user.id, current_user.full_name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{product_id}/restore", response_model=ProductRead)
def restore_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.PRODUCTS_DELETE)),
) -> ProductRead:
    log_action(db, current_user.id, "restore", "product", f"Producto {product_id} restaurado")
    product = catalog.restore_product(db, product_id)
    return ProductRead.model_validate(product)


@router.put("/{product_id}/image", response_model=ProductRead)
async def upload_product_image(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.PRODUCTS_WRITE)),
) -> ProductRead:
    await run_in_threadpool(catalog.get_product, db, product_id)
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    content = await request.body()
    url = await storage.upload_image(
        settings.product_images_bucket, f"products/{product_id}", content, content_type
    )

    log_action(db, current_user.id, "image", "product", f"Producto {product_id} imagen actualizada")
    previous = await run_in_threadpool(catalog.set_product_image, db, product_id, url)
    if previous and previous != url:
        await storage.delete_image(settings.product_images_bucket, previous)

    product = await run_in_threadpool(catalog.get_product, db, product_id)
    return ProductRead.model_validate(product)


@router.get("/{product_id}/movements", response_model=list[MovementRead])
def product_movements(
    product_id: int,
    include_deleted: bool = False,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> list[MovementRead]:
    catalog.get_product(db, product_id)
    rows = ledger.list_movements_for_product(
        db, product_id, include_deleted=include_deleted, date_from=date_from, date_to=date_to
    )
    return [MovementRead.model_validate(row) for row in rows]
