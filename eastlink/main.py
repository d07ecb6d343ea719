# File: eastlink/main.py
# Run with: uvicorn eastlink.main:app --reload
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from eastlink.api.admin import router as admin_router
from eastlink.api.auth import router as auth_router
from eastlink.api.cart import router as cart_router
from eastlink.api.delivery import router as delivery_router
from eastlink.api.notifications import router as notifications_router
from eastlink.api.orders import router as orders_router
from eastlink.api.products import router as products_router
from eastlink.api.reviews import router as reviews_router
from eastlink.api.users import router as users_router
from eastlink.core.config import settings
from eastlink.core.errors import register_exception_handlers
from eastlink.core.logging import logger, setup_logging
from eastlink.core.middleware import install_middleware
from eastlink.core.rate_limit import api_limiter
from eastlink.db import mongo
from eastlink.db.indexes import ensure_indexes
from eastlink.utils.serializers import utcnow


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if mongo.ping():
        ensure_indexes(mongo.get_db())
    logger.info(f"{settings.APP_NAME} started in {settings.ENVIRONMENT} mode")
    yield
    mongo.close_client()


app = FastAPI(
    title=settings.APP_NAME,
    description="Backend services for the EastLink multi-vendor marketplace.",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)
app.state.rate_limits = {}

install_middleware(app)
register_exception_handlers(app)


# --- Include Routers ---
for router in (auth_router, users_router, products_router, cart_router, orders_router,
               reviews_router, delivery_router, notifications_router, admin_router):
    app.include_router(router, prefix="/api", dependencies=[Depends(api_limiter)])


# --- Health ---
@app.get("/api/health")
def health():
    return {
        "success": True,
        "message": f"{settings.APP_NAME} is running",
        "timestamp": utcnow().isoformat() + "Z",
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
    }


@app.get("/")
def read_root():
    return {"status": "ok", "name": settings.APP_NAME}
