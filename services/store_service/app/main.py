"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.middleware import add_observability_middleware
from services.store_service.routers import (
    addresses_router,
    admin_catalog_router,
    admin_orders_router,
    cart_router,
    catalog_router,
    orders_router,
)


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title=f"{settings.STORE_NAME} Store Service",
        version="0.1.0",
        description="Watch storefront - catalog, cart, checkout, orders, addresses.",
    )
    add_observability_middleware(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # Public store routes (catalog, cart, checkout, orders, addresses)
    app.include_router(catalog_router, prefix="/store")
    app.include_router(cart_router, prefix="/store")
    app.include_router(orders_router, prefix="/store")
    app.include_router(addresses_router, prefix="/store")

    # Admin routes (catalog and order management)
    app.include_router(admin_catalog_router, prefix="/admin/store")
    app.include_router(admin_orders_router, prefix="/admin/store")

    return app


app = create_app()
