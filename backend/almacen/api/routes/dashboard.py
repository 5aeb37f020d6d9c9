from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from almacen.api.deps import require_operation
from almacen.core.config import get_settings
from almacen.db.session import get_db
from almacen.models.user import User
from almacen.schemas.dashboard import DashboardStatsRead
from almacen.services.dashboard import compute_stats
from almacen.services.rbac import Operation


router = APIRouter()


@router.get("/stats", response_model=DashboardStatsRead)
def stats(
    threshold: int | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    _: User = Depends(require_operation(Operation.CATALOG_VIEW)),
) -> DashboardStatsRead:
    settings = get_settings()
    result = compute_stats(
        db,
        low_stock_threshold=threshold if threshold is not None else settings.low_stock_threshold,
        recent_limit=settings.recent_products_limit,
    )
    return DashboardStatsRead.model_validate(result)
