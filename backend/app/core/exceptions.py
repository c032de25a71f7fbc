"""Typed errors raised while reconciling stock adjustments.

None of these escape the batch service: the applier converts them into
per-item failure records, and fails a whole chunk as ``UNKNOWN_ERROR`` when
something unexpected is raised inside it.
"""

from __future__ import annotations

import enum


class FailureReason(str, enum.Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    OPTIMISTIC_LOCK_ERROR = "OPTIMISTIC_LOCK_ERROR"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


NON_RETRYABLE_REASONS = frozenset(
    {
        FailureReason.VALIDATION_ERROR,
        FailureReason.PRODUCT_NOT_FOUND,
        FailureReason.LOCATION_NOT_FOUND,
    }
)


def is_retryable(reason: FailureReason) -> bool:
    return reason not in NON_RETRYABLE_REASONS


class AdjustmentError(Exception):
    """Base class: carries a failure reason and whether a resubmit can help."""

    reason: FailureReason = FailureReason.UNKNOWN_ERROR

    def __init__(self, message: str, *, reason: FailureReason | None = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.message = message

    @property
    def can_retry(self) -> bool:
        return is_retryable(self.reason)


class AdjustmentValidationError(AdjustmentError):
    reason = FailureReason.VALIDATION_ERROR

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ProductNotFoundError(AdjustmentError):
    reason = FailureReason.PRODUCT_NOT_FOUND

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product with ID {product_id} not found")
        self.product_id = product_id


class LocationNotFoundError(AdjustmentError):
    reason = FailureReason.LOCATION_NOT_FOUND

    def __init__(self, location_id: int) -> None:
        super().__init__(f"Location with ID {location_id} not found")
        self.location_id = location_id


class OptimisticLockError(AdjustmentError):
    reason = FailureReason.OPTIMISTIC_LOCK_ERROR

    def __init__(self, expected_version: int, current_version: int) -> None:
        super().__init__(
            "Inventory has been modified by another user "
            f"(expected version {expected_version}, current {current_version})"
        )
        self.expected_version = expected_version
        self.current_version = current_version


class ConcurrentUpdateError(AdjustmentError):
    reason = FailureReason.CONCURRENT_UPDATE


class VersionConflictError(ConcurrentUpdateError):
    """Raised by the stock repository when a conditional write matched no row."""

    def __init__(self, product_id: int, location_id: int, expected_version: int) -> None:
        super().__init__(
            f"Stock for product {product_id} at location {location_id} changed "
            f"while applying (version {expected_version} is no longer current)"
        )
        self.product_id = product_id
        self.location_id = location_id
        self.expected_version = expected_version


class ChunkTimeoutError(AdjustmentError):
    reason = FailureReason.DATABASE_ERROR

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Chunk exceeded its {timeout_seconds:g}s transaction budget")
        self.timeout_seconds = timeout_seconds
