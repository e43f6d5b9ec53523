"""
API Router
"""

from fastapi import APIRouter

from app.api.routes import auth, categories, checkout, orders, products, users

ROUTERS: tuple[APIRouter, ...] = (
    auth.router,
    users.router,
    categories.router,
    products.router,
    orders.router,
    checkout.router,
)

router = APIRouter()

for feature_router in ROUTERS:
    router.include_router(feature_router)

__all__ = ["ROUTERS", "router"]
