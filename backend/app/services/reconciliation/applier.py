"""Apply one chunk of adjustments inside one database transaction.

Per item: existence check, optimistic version check, log append, then a
conditional quantity update. With ``allow_partial`` each item runs in its
own SAVEPOINT; without it the first failure rolls the whole chunk back.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.exceptions import (
    AdjustmentError,
    AdjustmentValidationError,
    ChunkTimeoutError,
    ConcurrentUpdateError,
    FailureReason,
    LocationNotFoundError,
    OptimisticLockError,
    ProductNotFoundError,
)
from backend.app.models.inventory import InventoryLog, Location, LogType, Product
from backend.app.schemas.batch import INT_MAX, AppliedItem, FailureRecord
from backend.app.services.audit import log_bulk_inventory_update
from backend.app.services.reconciliation.validator import PendingAdjustment
from backend.app.services.reconciliation.version_store import SqlStockLevelRepository

logger = logging.getLogger(__name__)


@dataclass
class ChunkOutcome:
    applied: list[AppliedItem] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)


@dataclass
class _Catalog:
    """Names and liveness of the products/locations a chunk references."""

    products: dict[int, tuple[str, bool]] = field(default_factory=dict)
    locations: dict[int, str] = field(default_factory=dict)
    observed: dict[int, int] = field(default_factory=dict)

    def load(self, session: Session, chunk: Sequence[PendingAdjustment]) -> None:
        product_ids = sorted({p.request.product_id for p in chunk})
        location_ids = sorted({p.request.location_id for p in chunk})
        for pid, name, deleted_at in session.execute(
            select(Product.id, Product.name, Product.deleted_at).where(
                Product.id.in_(product_ids)
            )
        ):
            self.products[pid] = (name, deleted_at is None)
        for lid, name in session.execute(
            select(Location.id, Location.name).where(Location.id.in_(location_ids))
        ):
            self.locations[lid] = name

    def product_name(self, product_id: int) -> str:
        entry = self.products.get(product_id)
        return entry[0] if entry else "Unknown Product"

    def location_name(self, location_id: int) -> str:
        return self.locations.get(location_id, "Unknown Location")


class _ChunkAborted(Exception):
    def __init__(self, pending: PendingAdjustment, cause: AdjustmentError) -> None:
        super().__init__(cause.message)
        self.pending = pending
        self.cause = cause


class ChunkApplier:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        timeout_seconds: float = 10.0,
        isolation_level: str | None = "SERIALIZABLE",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout_seconds
        self._isolation_level = isolation_level
        self._clock = clock

    def apply(
        self,
        chunk: Sequence[PendingAdjustment],
        *,
        user_id: UUID,
        allow_partial: bool,
        batch_id: str,
        chunk_number: int = 1,
        log_type: LogType = LogType.ADJUSTMENT,
        note: str | None = None,
        ip_address: str | None = None,
    ) -> ChunkOutcome:
        started = self._clock()
        catalog = _Catalog()
        applied: list[AppliedItem] = []
        failures: list[FailureRecord] = []
        item_kwargs = {"user_id": user_id, "batch_id": batch_id, "log_type": log_type, "note": note}

        try:
            with self._session_factory() as session:
                with session.begin():
                    self._configure(session)
                    catalog.load(session, chunk)
                    repo = SqlStockLevelRepository(session)

                    for pending in chunk:
                        self._check_deadline(started)
                        if allow_partial:
                            try:
                                with session.begin_nested():
                                    applied.append(
                                        self._apply_one(session, repo, catalog, pending, **item_kwargs)
                                    )
                            except AdjustmentError as exc:
                                failures.append(self._failure(pending, exc, catalog))
                            except SQLAlchemyError as exc:
                                logger.warning(
                                    "Adjustment %d of batch %s failed in the database: %s",
                                    pending.index, batch_id, exc,
                                )
                                failures.append(
                                    self._failure(pending, _database_error(exc), catalog)
                                )
                        else:
                            try:
                                applied.append(
                                    self._apply_one(session, repo, catalog, pending, **item_kwargs)
                                )
                            except AdjustmentError as exc:
                                raise _ChunkAborted(pending, exc) from exc
                            except SQLAlchemyError as exc:
                                raise _ChunkAborted(pending, _database_error(exc)) from exc

                    self._check_deadline(started)
                    if applied:
                        log_bulk_inventory_update(
                            session,
                            user_id=user_id,
                            batch_id=batch_id,
                            chunk_number=chunk_number,
                            note=note,
                            ip_address=ip_address,
                            updates=[
                                {
                                    "productId": a.product_id,
                                    "productName": catalog.product_name(a.product_id),
                                    "locationId": a.location_id,
                                    "delta": a.delta,
                                }
                                for a in applied
                            ],
                        )
        except _ChunkAborted as abort:
            logger.warning(
                "Chunk %d of batch %s rolled back: item %d failed with %s",
                chunk_number, batch_id, abort.pending.index, abort.cause.reason.value,
            )
            return ChunkOutcome(failures=self._fail_all(chunk, abort.cause, catalog, abort.pending))
        except ChunkTimeoutError as exc:
            logger.warning("Chunk %d of batch %s timed out", chunk_number, batch_id)
            return ChunkOutcome(failures=self._fail_all(chunk, exc, catalog))
        except SQLAlchemyError as exc:
            logger.warning(
                "Chunk %d of batch %s could not be committed: %s", chunk_number, batch_id, exc
            )
            return ChunkOutcome(failures=self._fail_all(chunk, _database_error(exc), catalog))
        except Exception as exc:
            logger.exception(
                "Chunk %d of batch %s failed unexpectedly", chunk_number, batch_id
            )
            return ChunkOutcome(failures=self._fail_all(chunk, _unexpected_error(exc), catalog))

        return ChunkOutcome(applied=applied, failures=failures)

    # ─── Per item ─────────────────────────────────────────────────────────

    def _apply_one(
        self,
        session: Session,
        repo: SqlStockLevelRepository,
        catalog: _Catalog,
        pending: PendingAdjustment,
        *,
        user_id: UUID,
        batch_id: str,
        log_type: LogType,
        note: str | None,
    ) -> AppliedItem:
        req = pending.request

        product = catalog.products.get(req.product_id)
        if product is None or not product[1]:
            raise ProductNotFoundError(req.product_id)
        if req.location_id not in catalog.locations:
            raise LocationNotFoundError(req.location_id)

        current = repo.read_version(req.product_id, req.location_id)
        catalog.observed[pending.index] = current.quantity

        if req.expected_version is not None and req.expected_version != current.version:
            raise OptimisticLockError(req.expected_version, current.version)

        resulting = current.quantity + req.delta
        if (
            req.expected_version is None
            and req.new_quantity is not None
            and req.new_quantity != resulting
        ):
            raise ConcurrentUpdateError(
                f"Quantity changed since it was read: expected {req.new_quantity} "
                f"after applying {req.delta:+d}, but current quantity is {current.quantity}"
            )
        if resulting < 0:
            raise AdjustmentValidationError(
                f"Insufficient inventory: current {current.quantity}, "
                f"trying to remove {abs(req.delta)}",
                field="delta",
            )
        if resulting > INT_MAX:
            raise AdjustmentValidationError(
                f"Resulting quantity {resulting} exceeds the maximum of {INT_MAX}",
                field="delta",
            )

        session.add(
            InventoryLog(
                user_id=user_id,
                product_id=req.product_id,
                location_id=req.location_id,
                delta=req.delta,
                log_type=log_type,
                batch_id=batch_id,
                notes=req.reason or note,
                change_time=datetime.now(timezone.utc),
            )
        )
        session.flush()

        updated = repo.apply_if_version_matches(
            req.product_id, req.location_id, current.version, req.delta
        )
        return AppliedItem(
            index=pending.index,
            product_id=req.product_id,
            location_id=req.location_id,
            delta=req.delta,
            previous_quantity=current.quantity,
            new_quantity=updated.quantity,
            new_version=updated.version,
        )

    # ─── Transaction plumbing ─────────────────────────────────────────────

    def _configure(self, session: Session) -> None:
        dialect = session.get_bind().dialect.name
        # SQLite transactions are serializable already
        if self._isolation_level and dialect != "sqlite":
            session.connection(execution_options={"isolation_level": self._isolation_level})
        if dialect == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {int(self._timeout * 1000)}"))

    def _check_deadline(self, started: float) -> None:
        if self._clock() - started > self._timeout:
            raise ChunkTimeoutError(self._timeout)

    # ─── Failure records ──────────────────────────────────────────────────

    def _failure(
        self,
        pending: PendingAdjustment,
        exc: AdjustmentError,
        catalog: _Catalog,
        message: str | None = None,
    ) -> FailureRecord:
        req = pending.request
        return FailureRecord(
            index=pending.index,
            product_id=req.product_id,
            product_name=catalog.product_name(req.product_id),
            location_id=req.location_id,
            location_name=catalog.location_name(req.location_id),
            attempted_quantity=_attempted_quantity(req.new_quantity, req.delta, catalog.observed.get(pending.index)),
            current_quantity=catalog.observed.get(pending.index),
            reason=exc.reason,
            message=message or exc.message,
            timestamp=datetime.now(timezone.utc),
            can_retry=exc.can_retry,
        )

    def _fail_all(
        self,
        chunk: Sequence[PendingAdjustment],
        cause: AdjustmentError,
        catalog: _Catalog,
        culprit: PendingAdjustment | None = None,
    ) -> list[FailureRecord]:
        records = []
        for pending in chunk:
            if culprit is None or pending is culprit:
                records.append(self._failure(pending, cause, catalog))
            else:
                records.append(
                    self._failure(
                        pending,
                        cause,
                        catalog,
                        message=(
                            f"Rolled back with its chunk: item {culprit.index} failed "
                            f"({cause.reason.value}: {cause.message})"
                        ),
                    )
                )
        return records


def _database_error(exc: SQLAlchemyError) -> AdjustmentError:
    return AdjustmentError(
        f"Database error: {exc.__class__.__name__}", reason=FailureReason.DATABASE_ERROR
    )


def _unexpected_error(exc: Exception) -> AdjustmentError:
    return AdjustmentError(
        f"Unexpected error: {exc.__class__.__name__}", reason=FailureReason.UNKNOWN_ERROR
    )


def _attempted_quantity(new_quantity: int | None, delta: int, observed: int | None) -> int | None:
    if new_quantity is not None:
        return new_quantity
    if observed is not None:
        return observed + delta
    return None
