"""Wire types for batch stock adjustments.

Payloads are camelCase on the wire (``productId``, ``allowPartial``);
snake_case names are accepted too.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from backend.app.core.exceptions import FailureReason
from backend.app.models.inventory import LogType

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# Range of the INTEGER columns these values are stored in
INT_MIN = -(2**31)
INT_MAX = 2**31 - 1


class AdjustmentRequest(BaseModel):
    """One validated change to a ``(product, location)`` stock row.

    ``delta`` is authoritative. ``new_quantity`` is the client's view of
    the result and is only used to detect a stale view when no
    ``expected_version`` was sent.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    product_id: int = Field(gt=0, le=INT_MAX)
    location_id: int = Field(gt=0, le=INT_MAX)
    delta: int = Field(ge=INT_MIN, le=INT_MAX)
    expected_version: int | None = Field(default=None, ge=0, le=INT_MAX)
    new_quantity: int | None = Field(default=None, ge=0, le=INT_MAX)
    reason: str | None = Field(default=None, max_length=500)

    @field_validator(
        "product_id", "location_id", "delta", "expected_version", "new_quantity", mode="before"
    )
    @classmethod
    def integers_only(cls, v: Any) -> Any:
        # bool is an int subclass and digit strings coerce in lax mode
        if isinstance(v, (bool, str)):
            raise ValueError("must be an integer")
        return v

    @field_validator("delta")
    @classmethod
    def delta_non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Delta must not be zero")
        return v


class BatchAdjustRequest(BaseModel):
    model_config = _CAMEL

    # Items stay loose here so one malformed entry fails alone
    adjustments: list[Any] = Field(
        min_length=1, validation_alias=AliasChoices("adjustments", "changes")
    )
    allow_partial: bool = False
    note: str | None = Field(default=None, max_length=1000)
    log_type: LogType = LogType.ADJUSTMENT


class FailureRecord(BaseModel):
    model_config = _CAMEL

    index: int
    product_id: int | None = None
    product_name: str = "Unknown Product"
    location_id: int | None = None
    location_name: str = "Unknown Location"
    attempted_quantity: int | None = None
    current_quantity: int | None = None
    reason: FailureReason
    message: str
    timestamp: datetime
    can_retry: bool


class AppliedItem(BaseModel):
    model_config = _CAMEL

    index: int
    product_id: int
    location_id: int
    delta: int
    previous_quantity: int
    new_quantity: int
    new_version: int


class BatchResult(BaseModel):
    model_config = _CAMEL

    successful: int
    failed: int
    partial: bool
    failures: list[FailureRecord] = []
    applied: list[AppliedItem] = []
    transaction_id: str | None = None
