"""Product model.

One row per unique name key. The id is assigned the first time a name key is
seen and never changes across re-imports.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum, Float, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockviewer.domain import Availability
from stockviewer.stores.base import Base


def generate_product_id() -> str:
    """Generate unique product ID."""
    return str(uuid4())


class Product(Base):
    """Catalog entry reconciled from stock imports."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_product_id)

    name: Mapped[str] = mapped_column(Text)
    # Lowercased, whitespace-collapsed name: the identity used by upserts
    name_key: Mapped[str] = mapped_column(Text, unique=True)
    brand: Mapped[str | None] = mapped_column(Text, index=True)

    stock_qty: Mapped[float | None] = mapped_column(Float)
    unit: Mapped[str | None] = mapped_column(String(50))
    availability: Mapped[Availability] = mapped_column(
        Enum(
            Availability,
            name="availability",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
        index=True,
    )

    # Timestamps
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product {self.name_key} qty={self.stock_qty}>"
