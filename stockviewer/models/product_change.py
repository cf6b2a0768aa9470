"""ProductChange model.

Append-only audit log. Name and brand are copied onto each row so the history
still reads correctly after the product itself changes.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from stockviewer.domain import Availability, ChangeType
from stockviewer.stores.base import Base


def generate_change_id() -> str:
    """Generate unique change ID."""
    return str(uuid4())


def _availability_column() -> Enum:
    return Enum(Availability, native_enum=False, create_constraint=False, length=20)


class ProductChange(Base):
    """A single detected transition in quantity, availability or price."""

    __tablename__ = "product_changes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_change_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )

    # Snapshot at event time
    product_name: Mapped[str] = mapped_column(Text)
    product_brand: Mapped[str | None] = mapped_column(Text)

    change_type: Mapped[ChangeType] = mapped_column(
        Enum(
            ChangeType,
            name="change_type",
            native_enum=False,
            create_constraint=True,
            length=20,
        ),
    )

    from_qty: Mapped[float | None] = mapped_column(Float)
    to_qty: Mapped[float | None] = mapped_column(Float)
    from_availability: Mapped[Availability | None] = mapped_column(_availability_column())
    to_availability: Mapped[Availability | None] = mapped_column(_availability_column())
    from_price: Mapped[float | None] = mapped_column(Float)
    to_price: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ProductChange {self.change_type.value} {self.product_id}>"
