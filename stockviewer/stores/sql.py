"""SQLAlchemy implementation of the StockProvider contract.

Both backends run the same queries; subclasses only supply the engine, the
dialect-specific `insert` (for ON CONFLICT) and the chunk size that keeps each
multi-row INSERT under the driver's bound-parameter limit.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import math

from sqlalchemy import Table, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from stockviewer.domain import UNBRANDED, Availability, ChangeType, parse_availability
from stockviewer.models import Price, Product, ProductChange, generate_change_id, generate_product_id
from stockviewer.parsers.common import name_key_from_name
from stockviewer.services.change_tracking import ChangeEvent, ExistingProduct, detect_stock_changes
from stockviewer.services.normalizer import CanonicalItem
from stockviewer.stores.base import (
    Base,
    ChangeRow,
    ListChangesParams,
    ListProductsParams,
    PriceResult,
    ProductRow,
    StockProvider,
    Summary,
    UpsertResult,
)

logger = logging.getLogger("uvicorn.error")


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _utc(value: datetime) -> datetime:
    """Bind parameters in UTC; SQLite compares stored wall time, not instants."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _product_row(product: Product, dealer_price: float | None) -> ProductRow:
    return ProductRow(
        id=product.id,
        name=product.name,
        name_key=product.name_key,
        brand=product.brand,
        stock_qty=product.stock_qty,
        unit=product.unit,
        availability=parse_availability(product.availability),
        last_seen_at=_aware(product.last_seen_at),
        updated_at=_aware(product.updated_at),
        dealer_price=dealer_price,
    )


def _change_row(change: ProductChange) -> ChangeRow:
    return ChangeRow(
        id=change.id,
        product_id=change.product_id,
        product_name=change.product_name,
        product_brand=change.product_brand,
        change_type=change.change_type,
        from_qty=change.from_qty,
        to_qty=change.to_qty,
        from_availability=change.from_availability,
        to_availability=change.to_availability,
        from_price=change.from_price,
        to_price=change.to_price,
        created_at=_aware(change.created_at),
    )


def _change_values(event: ChangeEvent) -> dict[str, object]:
    return {
        "id": generate_change_id(),
        "product_id": event.product_id,
        "product_name": event.product_name,
        "product_brand": event.product_brand,
        "change_type": event.change_type,
        "from_qty": event.from_qty,
        "to_qty": event.to_qty,
        "from_availability": event.from_availability,
        "to_availability": event.to_availability,
        "from_price": event.from_price,
        "to_price": event.to_price,
        "created_at": event.created_at,
    }


class SqlStockProvider(StockProvider):
    """Shared SQLAlchemy 2.0 async provider."""

    kind = "sql"
    chunk_size = 100

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def _insert(self, table: Table):
        """Dialect insert supporting `on_conflict_do_update`."""
        raise NotImplementedError

    async def ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._schema_ready = True
            logger.info(f"[db] Schema ready ({self.kind})")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        await self.ensure_schema()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ============================================================
    # Reads
    # ============================================================

    async def get_summary(self) -> Summary:
        async with self.session() as session:
            counts = await session.execute(
                select(Product.availability, func.count()).group_by(Product.availability)
            )
            last_import_at = await session.scalar(select(func.max(Product.last_seen_at)))

        summary = Summary(last_import_at=_aware(last_import_at))
        for availability, count in counts.all():
            summary.total += count
            match parse_availability(availability):
                case Availability.IN_STOCK:
                    summary.in_stock += count
                case Availability.OUT_OF_STOCK:
                    summary.out_of_stock += count
                case Availability.NEGATIVE:
                    summary.negative += count
                case _:
                    summary.unknown += count
        return summary

    async def list_brands(self) -> list[str]:
        async with self.session() as session:
            result = await session.scalars(
                select(Product.brand).where(Product.brand.is_not(None)).distinct().order_by(Product.brand)
            )
            return list(result.all())

    async def list_products(self, params: ListProductsParams | None = None) -> list[ProductRow]:
        params = params or ListProductsParams()
        stmt = select(Product, Price.dealer_price).outerjoin(Price, Price.product_id == Product.id)

        if params.search and params.search.strip():
            stmt = stmt.where(Product.name_key.contains(name_key_from_name(params.search), autoescape=True))
        if params.brand:
            if params.brand == UNBRANDED:
                stmt = stmt.where(Product.brand.is_(None))
            else:
                stmt = stmt.where(Product.brand == params.brand)
        if params.availability is not None:
            stmt = stmt.where(Product.availability == params.availability)

        descending = params.direction == "desc"
        if params.sort == "qty":
            order = Product.stock_qty.desc() if descending else Product.stock_qty.asc()
            stmt = stmt.order_by(order.nulls_last(), Product.name_key)
        elif params.sort == "availability":
            order = Product.availability.desc() if descending else Product.availability.asc()
            stmt = stmt.order_by(order, Product.name_key)
        else:
            stmt = stmt.order_by(Product.name_key.desc() if descending else Product.name_key.asc())

        stmt = stmt.limit(params.capped_limit())

        async with self.session() as session:
            result = await session.execute(stmt)
            return [_product_row(product, price) for product, price in result.all()]

    async def get_product(self, product_id: str) -> ProductRow | None:
        stmt = (
            select(Product, Price.dealer_price)
            .outerjoin(Price, Price.product_id == Product.id)
            .where(Product.id == product_id)
        )
        async with self.session() as session:
            row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return _product_row(row[0], row[1])

    async def list_changes(self, params: ListChangesParams | None = None) -> list[ChangeRow]:
        params = params or ListChangesParams()
        stmt = select(ProductChange)
        if params.product_id:
            stmt = stmt.where(ProductChange.product_id == params.product_id)
        if params.since is not None:
            stmt = stmt.where(ProductChange.created_at >= _utc(params.since))
        if params.change_types:
            stmt = stmt.where(ProductChange.change_type.in_(params.change_types))
        stmt = stmt.order_by(ProductChange.created_at.desc()).limit(params.capped_limit())

        async with self.session() as session:
            result = await session.scalars(stmt)
            return [_change_row(c) for c in result.all()]

    # ============================================================
    # Writes
    # ============================================================

    async def upsert_stock(self, items: list[CanonicalItem]) -> UpsertResult:
        result = UpsertResult()
        if not items:
            return result

        for start in range(0, len(items), self.chunk_size):
            chunk = items[start:start + self.chunk_size]
            upserted, changes, ids = await self._upsert_chunk(chunk)
            result.upserted += upserted
            result.changes += changes
            result.product_ids.update(ids)

        logger.info(
            f"[db] Upserted {result.upserted} products, {result.changes} change events ({self.kind})"
        )
        return result

    async def _upsert_chunk(self, chunk: list[CanonicalItem]) -> tuple[int, int, dict[str, str]]:
        at = datetime.now(timezone.utc)
        keys = [item.name_key for item in chunk]

        async with self.session() as session:
            existing_rows = await session.execute(
                select(
                    Product.id,
                    Product.name_key,
                    Product.brand,
                    Product.stock_qty,
                    Product.availability,
                ).where(Product.name_key.in_(keys))
            )
            existing = {
                row.name_key: ExistingProduct(
                    id=row.id,
                    name_key=row.name_key,
                    brand=row.brand,
                    stock_qty=row.stock_qty,
                    availability=parse_availability(row.availability),
                )
                for row in existing_rows.all()
            }

            values: list[dict[str, object]] = []
            events: list[ChangeEvent] = []
            ids: dict[str, str] = {}
            for item in chunk:
                current = existing.get(item.name_key)
                product_id = current.id if current else (item.product_id or generate_product_id())
                ids[item.name_key] = product_id
                events.extend(detect_stock_changes(item, current, product_id, at))
                values.append(
                    {
                        "id": product_id,
                        "name": item.name,
                        "name_key": item.name_key,
                        "brand": item.brand,
                        "stock_qty": item.qty,
                        "unit": item.unit,
                        "availability": item.availability,
                        "last_seen_at": item.last_seen_at,
                        "created_at": at,
                        "updated_at": at,
                    }
                )

            stmt = self._insert(Product.__table__).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["name_key"],
                set_={
                    "name": stmt.excluded.name,
                    "brand": func.coalesce(stmt.excluded.brand, Product.__table__.c.brand),
                    "unit": func.coalesce(stmt.excluded.unit, Product.__table__.c.unit),
                    "stock_qty": stmt.excluded.stock_qty,
                    "availability": stmt.excluded.availability,
                    "last_seen_at": stmt.excluded.last_seen_at,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await session.execute(stmt)

            if events:
                await session.execute(insert(ProductChange.__table__), [_change_values(e) for e in events])

        return len(values), len(events), ids

    async def set_dealer_price(self, product_id: str, dealer_price: float | None) -> PriceResult:
        if dealer_price is not None:
            try:
                finite = math.isfinite(dealer_price)
            except TypeError:
                finite = False
            if not finite:
                return PriceResult(ok=False, error="Dealer price must be a finite number")

        try:
            async with self.session() as session:
                product = await session.get(Product, product_id)
                if product is None:
                    return PriceResult(ok=False, error=f"Product {product_id} not found")

                current = await session.scalar(
                    select(Price.dealer_price).where(Price.product_id == product_id)
                )
                at = datetime.now(timezone.utc)

                stmt = self._insert(Price.__table__).values(
                    product_id=product_id,
                    dealer_price=dealer_price,
                    updated_at=at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["product_id"],
                    set_={
                        "dealer_price": stmt.excluded.dealer_price,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                await session.execute(stmt)

                if current != dealer_price:
                    session.add(
                        ProductChange(
                            id=generate_change_id(),
                            product_id=product_id,
                            product_name=product.name,
                            product_brand=product.brand,
                            change_type=ChangeType.PRICE_CHANGE,
                            from_price=current,
                            to_price=dealer_price,
                            created_at=at,
                        )
                    )
        except SQLAlchemyError as e:
            logger.error(f"[db] Failed to set dealer price for {product_id}: {e}")
            return PriceResult(ok=False, error=str(e))

        return PriceResult(ok=True)

    async def close(self) -> None:
        await self._engine.dispose()
