from fastapi import APIRouter

from almacen.api.routes import (
    auth,
    dashboard,
    movements,
    products,
    users,
)


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(products.router, prefix="/products", tags=["Productos"])
api_router.include_router(movements.router, prefix="/movements", tags=["Movimientos"])
api_router.include_router(users.router, prefix="/users", tags=["Usuarios"])
