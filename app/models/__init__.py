"""
SQLModel table models.

For modifications:
1. Edit the appropriate model file in app/models/
2. Create an Alembic migration to reflect the changes
"""

from app.models.category import Categories
from app.models.order import OrderItems, Orders
from app.models.product import Products
from app.models.user import Users

__all__ = [
    "Categories",
    "OrderItems",
    "Orders",
    "Products",
    "Users",
]
