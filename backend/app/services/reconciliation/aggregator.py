from __future__ import annotations

from collections.abc import Iterable

from fastapi import status

from backend.app.core.exceptions import FailureReason
from backend.app.schemas.batch import AppliedItem, BatchResult, FailureRecord
from backend.app.services.reconciliation.applier import ChunkOutcome


def aggregate(
    validation_failures: Iterable[FailureRecord],
    outcomes: Iterable[ChunkOutcome],
    *,
    transaction_id: str | None = None,
) -> BatchResult:
    """Merge validation failures and per-chunk outcomes into one result,
    ordered by each item's position in the submitted batch."""
    applied: list[AppliedItem] = []
    failures: list[FailureRecord] = list(validation_failures)
    for outcome in outcomes:
        applied.extend(outcome.applied)
        failures.extend(outcome.failures)

    applied.sort(key=lambda a: a.index)
    failures.sort(key=lambda f: f.index)
    return BatchResult(
        successful=len(applied),
        failed=len(failures),
        partial=bool(applied) and bool(failures),
        failures=failures,
        applied=applied,
        transaction_id=transaction_id,
    )


def http_status_for(result: BatchResult) -> int:
    """200 when anything was applied; otherwise an error status so that
    "nothing happened" never reads as success."""
    if result.successful > 0 or result.failed == 0:
        return status.HTTP_200_OK
    if all(f.reason == FailureReason.VALIDATION_ERROR for f in result.failures):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR
