"""Price model.

Dealer price per product (1:1). Only the explicit price-edit path writes here;
stock imports never touch it.
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stockviewer.stores.base import Base


class Price(Base):
    """Dealer price for a product."""

    __tablename__ = "prices"

    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )
    dealer_price: Mapped[float | None] = mapped_column(Float)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Price {self.product_id} {self.dealer_price}>"
