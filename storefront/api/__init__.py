# storefront/api/__init__.py
from fastapi import FastAPI

from storefront.api.routers import admin_orders, carts, catalog, health, orders


def register_routers(app: FastAPI) -> FastAPI:
    app.include_router(health.router)
    app.include_router(catalog.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(admin_orders.router)
    return app
