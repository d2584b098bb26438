"""
Brew & Leaf - Application Entry Point
=======================================
FastAPI app initialization, error handling, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from config.database import Base, engine
from common.exceptions import StorefrontError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("brewleaf.app")


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401
from modules.customer.address_models import CustomerAddress  # noqa: F401
from modules.catalog.models import Product  # noqa: F401
from modules.cart.models import CartItem  # noqa: F401
from modules.order.models import Order, OrderItem  # noqa: F401
from modules.review.models import Review  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.cart.routes import router as cart_router
from modules.order.routes import router as order_router
from modules.order.admin_routes import router as order_admin_router
from modules.payment.routes import router as payment_router
from modules.review.routes import router as review_router


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    logger.info("Storefront started")
    yield
    logger.info("Storefront stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Brew & Leaf",
    description="Coffee & tea storefront: cart, checkout, orders, reviews",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handler: business errors → JSON
# ==========================================
@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        {"detail": exc.message, "code": exc.code, **exc.details()},
        status_code=exc.status_code,
    )


# ==========================================
# Register Routers
# ==========================================
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(order_admin_router)
app.include_router(payment_router)
app.include_router(review_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
