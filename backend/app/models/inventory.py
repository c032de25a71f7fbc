from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class LogType(str, enum.Enum):
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    STOCK_IN = "STOCK_IN"
    SALE = "SALE"
    RETURN = "RETURN"


class Product(Base):
    """Catalog product. ``deleted_at`` marks a soft delete."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    base_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    variant: Mapped[str | None] = mapped_column(String(255), nullable=True)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    stock_levels: Mapped[list[StockLevel]] = relationship(back_populates="product")

    __table_args__ = (
        CheckConstraint("low_stock_threshold >= 0", name="ck_product_threshold_non_negative"),
        Index("ix_products_deleted_at", "deleted_at"),
        Index("ix_products_base_name", "base_name"),
    )


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    stock_levels: Mapped[list[StockLevel]] = relationship(back_populates="location")


class StockLevel(Base):
    """Quantity of one product at one location.

    ``version`` is the optimistic-lock counter: every applied mutation bumps
    it by exactly one, and writers only update the row they observed.
    """

    __tablename__ = "stock_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    product: Mapped[Product] = relationship(back_populates="stock_levels")
    location: Mapped[Location] = relationship(back_populates="stock_levels")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_level_qty_non_negative"),
        CheckConstraint("version >= 0", name="ck_stock_level_version_non_negative"),
        UniqueConstraint("product_id", "location_id", name="uq_stock_level_product_location"),
        Index("ix_stock_levels_location", "location_id"),
        Index("ix_stock_levels_updated_at", "updated_at"),
    )


class InventoryLog(Base):
    """Append-only record of one applied stock mutation."""

    __tablename__ = "inventory_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    log_type: Mapped[LogType] = mapped_column(
        Enum(LogType), nullable=False, default=LogType.ADJUSTMENT
    )
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    product: Mapped[Product] = relationship()
    location: Mapped[Location] = relationship()

    __table_args__ = (
        CheckConstraint("delta != 0", name="ck_inventory_log_delta_non_zero"),
        Index("ix_inventory_logs_product_location", "product_id", "location_id"),
        Index("ix_inventory_logs_change_time", "change_time"),
        Index("ix_inventory_logs_batch", "batch_id"),
    )
