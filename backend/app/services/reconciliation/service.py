"""Batch adjustment entry point: validate, partition, apply, aggregate."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.config import settings
from backend.app.core.exceptions import FailureReason
from backend.app.models.inventory import LogType
from backend.app.schemas.batch import AppliedItem, BatchResult, FailureRecord
from backend.app.services.reconciliation.aggregator import aggregate
from backend.app.services.reconciliation.applier import ChunkApplier, ChunkOutcome
from backend.app.services.reconciliation.partitioner import partition
from backend.app.services.reconciliation.validator import validate_batch

logger = logging.getLogger(__name__)

# Called with a fresh session and the items a committed chunk applied
AppliedHook = Callable[[Session, Sequence[AppliedItem]], None]


def low_stock_hook(db: Session, applied: Sequence[AppliedItem]) -> None:
    from backend.app.services.stock_alerts import dispatch_low_stock_alerts, threshold_crossings

    dispatch_low_stock_alerts(threshold_crossings(db, applied))


class BatchAdjustmentService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        chunk_size: int = 50,
        timeout_seconds: float = 10.0,
        isolation_level: str | None = "SERIALIZABLE",
        clock: Callable[[], float] = time.monotonic,
        on_applied: AppliedHook | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._session_factory = session_factory
        self._chunk_size = chunk_size
        self._applier = ChunkApplier(
            session_factory,
            timeout_seconds=timeout_seconds,
            isolation_level=isolation_level,
            clock=clock,
        )
        self._on_applied = on_applied

    def submit(
        self,
        raw_items: Sequence[Any],
        *,
        user_id: UUID,
        allow_partial: bool = False,
        note: str | None = None,
        log_type: LogType = LogType.ADJUSTMENT,
        ip_address: str | None = None,
    ) -> BatchResult:
        """Apply a batch of adjustments and report per-item outcomes.

        Chunks commit independently and in order, so a failed chunk never
        undoes an earlier one. Never raises: anything unexpected comes back
        as an ``UNKNOWN_ERROR`` result.
        """
        transaction_id = uuid.uuid4().hex
        try:
            result = self._run(
                raw_items,
                user_id=user_id,
                allow_partial=allow_partial,
                note=note,
                log_type=log_type,
                ip_address=ip_address,
                transaction_id=transaction_id,
            )
        except Exception as exc:
            logger.exception("Batch %s aborted by an unexpected error", transaction_id)
            return BatchResult(
                successful=0,
                failed=1,
                partial=False,
                failures=[
                    FailureRecord(
                        index=0,
                        reason=FailureReason.UNKNOWN_ERROR,
                        message=f"Unexpected error: {exc.__class__.__name__}",
                        timestamp=datetime.now(timezone.utc),
                        can_retry=True,
                    )
                ],
                transaction_id=transaction_id,
            )

        logger.info(
            "Batch %s by user %s: %d applied, %d failed (allow_partial=%s)",
            transaction_id, user_id, result.successful, result.failed, allow_partial,
        )
        return result

    def _run(
        self,
        raw_items: Sequence[Any],
        *,
        user_id: UUID,
        allow_partial: bool,
        note: str | None,
        log_type: LogType,
        ip_address: str | None,
        transaction_id: str,
    ) -> BatchResult:
        valid, validation_failures = validate_batch(raw_items)
        if validation_failures:
            logger.info(
                "Batch %s: %d item(s) rejected by validation", transaction_id, len(validation_failures)
            )

        outcomes: list[ChunkOutcome] = []
        for number, chunk in enumerate(partition(valid, self._chunk_size), start=1):
            outcome = self._applier.apply(
                chunk,
                user_id=user_id,
                allow_partial=allow_partial,
                batch_id=transaction_id,
                chunk_number=number,
                log_type=log_type,
                note=note,
                ip_address=ip_address,
            )
            outcomes.append(outcome)
            if outcome.applied and self._on_applied is not None:
                self._notify(outcome.applied, transaction_id)

        return aggregate(validation_failures, outcomes, transaction_id=transaction_id)

    def _notify(self, applied: Sequence[AppliedItem], transaction_id: str) -> None:
        # The chunk is already committed; a failing hook must not change the result
        try:
            with self._session_factory() as session:
                self._on_applied(session, applied)
        except Exception:
            logger.exception("Post-commit hook failed for batch %s", transaction_id)


def build_batch_service(session_factory: sessionmaker[Session]) -> BatchAdjustmentService:
    return BatchAdjustmentService(
        session_factory,
        chunk_size=settings.BATCH_CHUNK_SIZE,
        timeout_seconds=settings.BATCH_CHUNK_TIMEOUT_SECONDS,
        isolation_level=settings.BATCH_ISOLATION_LEVEL,
        on_applied=low_stock_hook,
    )
