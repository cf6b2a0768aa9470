"""SQLAlchemy ORM models.

Models represent database tables:
- products: Catalog entries keyed by name key
- prices: Dealer price per product (edited explicitly, never by imports)
- product_changes: Append-only change log
"""

from stockviewer.models.product import Product, generate_product_id
from stockviewer.models.price import Price
from stockviewer.models.product_change import ProductChange, generate_change_id

__all__ = ["Product", "Price", "ProductChange", "generate_product_id", "generate_change_id"]
