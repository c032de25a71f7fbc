"""Catalog maintenance and stock read models.

Stock quantities are never written here: every mutation goes through the
batch adjustment service so it is versioned and logged.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.models.inventory import InventoryLog, Location, Product, StockLevel
from backend.app.schemas.inventory import (
    LocationCreate,
    LocationOut,
    MassUpdateCell,
    MassUpdateGrid,
    MassUpdateRow,
    ProductCreate,
    StockLevelOut,
    ThresholdOut,
    ThresholdUpdate,
)
from backend.app.services.audit import log_action


# ─── Products ────────────────────────────────────────────────────────────────


def list_products(db: Session, *, include_deleted: bool = False) -> list[Product]:
    stmt = select(Product).order_by(Product.name)
    if not include_deleted:
        stmt = stmt.where(Product.deleted_at.is_(None))
    return list(db.scalars(stmt))


def create_product(
    db: Session,
    data: ProductCreate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Product:
    if data.sku and db.scalar(select(Product.id).where(Product.sku == data.sku)):
        raise ValueError(f"SKU '{data.sku}' already exists")

    product = Product(**data.model_dump())
    db.add(product)
    db.flush()

    log_action(
        db,
        user_id=user_id,
        action="PRODUCT_CREATED",
        resource_type="products",
        resource_id=str(product.id),
        changes=data.model_dump(),
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(product)
    return product


def set_product_deleted(
    db: Session,
    product_id: int,
    *,
    deleted: bool,
    user_id: UUID,
    ip_address: str | None = None,
) -> Product:
    """Soft delete or restore. Deleted products reject new adjustments but
    keep their stock rows and history."""
    product = db.get(Product, product_id)
    if not product:
        raise ValueError(f"Product with ID {product_id} not found")
    if deleted and product.deleted_at is not None:
        raise ValueError("Product is already deleted")
    if not deleted and product.deleted_at is None:
        raise ValueError("Product is not deleted")

    product.deleted_at = datetime.now(timezone.utc) if deleted else None
    log_action(
        db,
        user_id=user_id,
        action="PRODUCT_DELETED" if deleted else "PRODUCT_RESTORED",
        resource_type="products",
        resource_id=str(product.id),
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(product)
    return product


# ─── Low-stock thresholds ────────────────────────────────────────────────────


def list_thresholds(db: Session) -> list[ThresholdOut]:
    """Live products with their threshold and total stock across locations."""
    stmt = (
        select(
            Product.id,
            Product.name,
            Product.low_stock_threshold,
            func.coalesce(func.sum(StockLevel.quantity), 0),
        )
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .where(Product.deleted_at.is_(None))
        .group_by(Product.id, Product.name, Product.low_stock_threshold)
        .order_by(Product.name)
    )
    return [
        ThresholdOut(
            id=pid, name=name, low_stock_threshold=threshold, current_stock=int(total)
        )
        for pid, name, threshold, total in db.execute(stmt)
    ]


def update_thresholds(
    db: Session,
    updates: list[ThresholdUpdate],
    user_id: UUID,
    ip_address: str | None = None,
) -> int:
    """Set low-stock thresholds in one transaction. All or nothing: an
    unknown or deleted product rejects the whole request. Returns how many
    products actually changed."""
    ids = {u.id for u in updates}
    products = {
        p.id: p
        for p in db.scalars(
            select(Product).where(Product.id.in_(sorted(ids)), Product.deleted_at.is_(None))
        )
    }
    missing = sorted(ids - products.keys())
    if missing:
        raise ValueError(f"Product with ID {missing[0]} not found")

    changed = 0
    for update in updates:
        product = products[update.id]
        if product.low_stock_threshold == update.low_stock_threshold:
            continue
        log_action(
            db,
            user_id=user_id,
            action="PRODUCT_THRESHOLD_UPDATED",
            resource_type="products",
            resource_id=str(product.id),
            changes={"old": product.low_stock_threshold, "new": update.low_stock_threshold},
            ip_address=ip_address,
        )
        product.low_stock_threshold = update.low_stock_threshold
        changed += 1
    db.commit()
    return changed


# ─── Locations ───────────────────────────────────────────────────────────────


def list_locations(db: Session) -> list[Location]:
    return list(db.scalars(select(Location).order_by(Location.name)))


def create_location(
    db: Session,
    data: LocationCreate,
    user_id: UUID,
    ip_address: str | None = None,
) -> Location:
    name = data.name.strip()
    if db.scalar(select(Location.id).where(func.lower(Location.name) == name.lower())):
        raise ValueError(f"Location '{name}' already exists")

    location = Location(name=name)
    db.add(location)
    db.flush()
    log_action(
        db,
        user_id=user_id,
        action="LOCATION_CREATED",
        resource_type="locations",
        resource_id=str(location.id),
        changes={"name": name},
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(location)
    return location


# ─── Stock read models ───────────────────────────────────────────────────────


def list_stock_levels(
    db: Session,
    *,
    location_id: int | None = None,
    product_id: int | None = None,
) -> list[StockLevelOut]:
    """Current quantity and version per existing row. Clients echo the
    version back as ``expectedVersion``."""
    stmt = (
        select(StockLevel, Product.name, Location.name)
        .join(Product, Product.id == StockLevel.product_id)
        .join(Location, Location.id == StockLevel.location_id)
        .where(Product.deleted_at.is_(None))
        .order_by(Product.name, Location.name)
    )
    if location_id is not None:
        stmt = stmt.where(StockLevel.location_id == location_id)
    if product_id is not None:
        stmt = stmt.where(StockLevel.product_id == product_id)

    return [
        StockLevelOut(
            product_id=level.product_id,
            product_name=product_name,
            location_id=level.location_id,
            location_name=location_name,
            quantity=level.quantity,
            version=level.version,
            updated_at=level.updated_at,
        )
        for level, product_name, location_name in db.execute(stmt)
    ]


def list_inventory_logs(
    db: Session,
    *,
    product_id: int | None = None,
    location_id: int | None = None,
    batch_id: str | None = None,
    limit: int = 100,
) -> list[InventoryLog]:
    stmt = select(InventoryLog).order_by(InventoryLog.change_time.desc(), InventoryLog.id.desc())
    if product_id is not None:
        stmt = stmt.where(InventoryLog.product_id == product_id)
    if location_id is not None:
        stmt = stmt.where(InventoryLog.location_id == location_id)
    if batch_id is not None:
        stmt = stmt.where(InventoryLog.batch_id == batch_id)
    return list(db.scalars(stmt.limit(limit)))


def mass_update_grid(db: Session) -> MassUpdateGrid:
    """Every live product against every active location. Missing rows show
    as quantity 0, version 0, which is what the first adjustment expects."""
    locations = list(
        db.scalars(select(Location).where(Location.is_active.is_(True)).order_by(Location.name))
    )
    products = list_products(db)
    existing = {
        (level.product_id, level.location_id): level
        for level in db.scalars(
            select(StockLevel).where(StockLevel.product_id.in_([p.id for p in products]))
        )
    }

    rows = []
    for product in products:
        cells = []
        for location in locations:
            level = existing.get((product.id, location.id))
            cells.append(
                MassUpdateCell(
                    location_id=location.id,
                    quantity=level.quantity if level else 0,
                    version=level.version if level else 0,
                )
            )
        rows.append(
            MassUpdateRow(
                product_id=product.id, product_name=product.name, sku=product.sku, cells=cells
            )
        )
    return MassUpdateGrid(
        locations=[LocationOut.model_validate(loc) for loc in locations], rows=rows
    )
