"""Structural validation of raw adjustment items.

Pure functions: nothing here touches the database. Each raw item either
parses into an ``AdjustmentRequest`` or becomes a non-retryable
``VALIDATION_ERROR`` failure record.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from backend.app.core.exceptions import AdjustmentValidationError, FailureReason
from backend.app.schemas.batch import AdjustmentRequest, FailureRecord


@dataclass(frozen=True)
class PendingAdjustment:
    """A validated request plus its position in the submitted batch."""

    index: int
    request: AdjustmentRequest


def validate_adjustment(raw: Any) -> AdjustmentRequest:
    """Parse one raw item, raising ``AdjustmentValidationError`` on the first
    problem found (ids, then delta/version, then resulting quantity)."""
    try:
        return AdjustmentRequest.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        message = f"{field}: {first['msg']}" if field else first["msg"]
        raise AdjustmentValidationError(message, field=field or None) from exc


def validate_batch(
    raw_items: Iterable[Any],
) -> tuple[list[PendingAdjustment], list[FailureRecord]]:
    """Split raw items into valid pending adjustments and validation failures."""
    valid: list[PendingAdjustment] = []
    failures: list[FailureRecord] = []
    for index, raw in enumerate(raw_items):
        try:
            valid.append(PendingAdjustment(index=index, request=validate_adjustment(raw)))
        except AdjustmentValidationError as exc:
            failures.append(validation_failure(index, raw, exc))
    return valid, failures


def validation_failure(index: int, raw: Any, exc: AdjustmentValidationError) -> FailureRecord:
    return FailureRecord(
        index=index,
        product_id=_int_field(raw, "productId", "product_id"),
        location_id=_int_field(raw, "locationId", "location_id"),
        attempted_quantity=_int_field(raw, "newQuantity", "new_quantity"),
        reason=FailureReason.VALIDATION_ERROR,
        message=exc.message,
        timestamp=datetime.now(timezone.utc),
        can_retry=False,
    )


def _int_field(raw: Any, *keys: str) -> int | None:
    if not isinstance(raw, dict):
        return None
    for key in keys:
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None
