import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from almacen.api.routes import api_router
from almacen.core.config import get_settings
from almacen.core.errors import InventoryError
from almacen.core.logging import configure_logging
from almacen.db.base import Base
from almacen.db.session import SessionLocal, engine
from almacen.services.seed import seed_initial_data


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(_: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.on_event("startup")
def startup_event() -> None:
    retries = 20
    while retries > 0:
        try:
            Base.metadata.create_all(bind=engine)
            break
        except OperationalError:
            retries -= 1
            if retries == 0:
                raise
            logger.warning("Database not ready, retrying (%s attempts left)", retries)
            time.sleep(1)

    db = SessionLocal()
    try:
        seed_initial_data(db)
    finally:
        db.close()


@app.get("/")
def root() -> dict:
    return {
        "name": "Almacen Inventory API",
        "version": "0.1.0",
        "docs": "/docs",
    }


app.include_router(api_router, prefix=settings.api_v1_prefix)
