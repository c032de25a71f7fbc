from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from backend.app.models.inventory import LogType
from backend.app.schemas.batch import INT_MAX

_CAMEL_ORM = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ─── Catalog ─────────────────────────────────────────────────────────────────


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sku: str | None = Field(default=None, max_length=100)
    base_name: str | None = None
    variant: str | None = None
    low_stock_threshold: int = Field(default=0, ge=0, le=INT_MAX)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sku: str | None
    base_name: str | None
    variant: str | None
    low_stock_threshold: int
    deleted_at: datetime | None


class ThresholdOut(BaseModel):
    model_config = _CAMEL_ORM

    id: int
    name: str
    low_stock_threshold: int
    current_stock: int


class ThresholdUpdate(BaseModel):
    model_config = _CAMEL_ORM

    id: int = Field(gt=0, le=INT_MAX)
    low_stock_threshold: int = Field(ge=0, le=INT_MAX)


class ThresholdUpdateRequest(BaseModel):
    model_config = _CAMEL_ORM

    updates: list[ThresholdUpdate] = Field(min_length=1)


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class LocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_active: bool


# ─── Stock ───────────────────────────────────────────────────────────────────


class StockLevelOut(BaseModel):
    model_config = _CAMEL_ORM

    product_id: int
    product_name: str
    location_id: int
    location_name: str
    quantity: int
    version: int
    updated_at: datetime | None = None


class InventoryLogOut(BaseModel):
    model_config = _CAMEL_ORM

    id: int
    user_id: UUID
    product_id: int
    location_id: int
    delta: int
    log_type: LogType
    batch_id: str | None
    notes: str | None
    change_time: datetime


class LowStockOut(BaseModel):
    model_config = _CAMEL_ORM

    id: int
    name: str
    current_stock: int
    threshold: int


# ─── Admin mass update ───────────────────────────────────────────────────────


class MassUpdateCell(BaseModel):
    model_config = _CAMEL_ORM

    location_id: int
    quantity: int
    version: int


class MassUpdateRow(BaseModel):
    model_config = _CAMEL_ORM

    product_id: int
    product_name: str
    sku: str | None
    cells: list[MassUpdateCell]


class MassUpdateGrid(BaseModel):
    model_config = _CAMEL_ORM

    locations: list[LocationOut]
    rows: list[MassUpdateRow]

