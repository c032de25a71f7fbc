"""Tests for the chunk applier: both containment modes, version checks,
deadline handling and audit rows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.exceptions import FailureReason
from backend.app.models.inventory import Location, Product, StockLevel
from backend.app.models.user import User
from backend.app.services.reconciliation.applier import ChunkApplier
from backend.app.services.reconciliation.validator import PendingAdjustment, validate_adjustment
from backend.app.services.reconciliation.version_store import SqlStockLevelRepository
from backend.tests.conftest import audit_actions, count_logs, read_stock


def _pending(index: int, product_id: int, location_id: int, delta: int, **extra: object) -> PendingAdjustment:
    raw: dict[str, object] = {"productId": product_id, "locationId": location_id, "delta": delta}
    raw.update(extra)
    return PendingAdjustment(index=index, request=validate_adjustment(raw))


class _SteppingClock:
    """Returns the given readings in order, then repeats the last one."""

    def __init__(self, *readings: float) -> None:
        self._readings = list(readings)

    def __call__(self) -> float:
        if len(self._readings) > 1:
            return self._readings.pop(0)
        return self._readings[0]


def _apply(
    session_factory: sessionmaker[Session],
    chunk: list[PendingAdjustment],
    user: User,
    *,
    allow_partial: bool,
    **kwargs: object,
):
    applier = ChunkApplier(session_factory, **kwargs)
    return applier.apply(
        chunk, user_id=user.id, allow_partial=allow_partial, batch_id=uuid.uuid4().hex
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Happy path
# ═══════════════════════════════════════════════════════════════════════════════


class TestApplySuccess:
    def test_applies_delta_logs_and_bumps_version(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, pid, lid, -3, expectedVersion=1, newQuantity=7)],
            clerk_user,
            allow_partial=False,
        )
        assert outcome.failures == []
        [item] = outcome.applied
        assert (item.previous_quantity, item.new_quantity, item.new_version) == (10, 7, 2)
        assert read_stock(session_factory, pid, lid) == (7, 2)
        assert count_logs(session_factory, product_id=pid, location_id=lid) == 1

    def test_creates_row_on_first_adjustment(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget: Product,
        back_room: Location,
    ) -> None:
        outcome = _apply(
            session_factory,
            [_pending(0, widget.id, back_room.id, 4, expectedVersion=0)],
            clerk_user,
            allow_partial=False,
        )
        assert outcome.applied[0].new_version == 1
        assert read_stock(session_factory, widget.id, back_room.id) == (4, 1)

    def test_same_row_twice_in_one_chunk(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, pid, lid, 2), _pending(1, pid, lid, 3)],
            clerk_user,
            allow_partial=False,
        )
        assert [a.new_version for a in outcome.applied] == [2, 3]
        assert read_stock(session_factory, pid, lid) == (15, 3)

    def test_one_audit_row_per_chunk(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        lid = widget_stock.location_id
        _apply(
            session_factory,
            [_pending(0, widget_stock.product_id, lid, 1), _pending(1, gadget.id, lid, 2)],
            clerk_user,
            allow_partial=False,
        )
        [row] = audit_actions(session_factory, "INVENTORY_BULK_UPDATE")
        assert row.table_name == "stock_levels"
        assert row.changed_by == clerk_user.id
        assert row.new_values["affected_count"] == 2
        assert {u["productName"] for u in row.new_values["updates"]} == {"Widget", "Gadget"}


# ═══════════════════════════════════════════════════════════════════════════════
#  Failure modes
# ═══════════════════════════════════════════════════════════════════════════════


class TestApplyFailures:
    def test_stale_expected_version(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, pid, lid, 5, expectedVersion=0)],
            clerk_user,
            allow_partial=True,
        )
        [failure] = outcome.failures
        assert failure.reason == FailureReason.OPTIMISTIC_LOCK_ERROR
        assert failure.can_retry is True
        assert failure.current_quantity == 10
        assert failure.product_name == "Widget"
        assert failure.location_name == "Main Store"
        assert "modified by another user" in failure.message
        assert read_stock(session_factory, pid, lid) == (10, 1)

    def test_stale_new_quantity_without_version(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, pid, lid, 5, newQuantity=8)],
            clerk_user,
            allow_partial=True,
        )
        assert outcome.failures[0].reason == FailureReason.CONCURRENT_UPDATE
        assert outcome.failures[0].attempted_quantity == 8

    def test_negative_result_rejected(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(
            session_factory, [_pending(0, pid, lid, -11)], clerk_user, allow_partial=True
        )
        [failure] = outcome.failures
        assert failure.reason == FailureReason.VALIDATION_ERROR
        assert failure.can_retry is False
        assert "Insufficient inventory" in failure.message
        assert failure.attempted_quantity == -1

    def test_unknown_location(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget: Product,
    ) -> None:
        outcome = _apply(
            session_factory, [_pending(0, widget.id, 999, 1)], clerk_user, allow_partial=True
        )
        [failure] = outcome.failures
        assert failure.reason == FailureReason.LOCATION_NOT_FOUND
        assert failure.location_name == "Unknown Location"
        assert failure.can_retry is False

    def test_soft_deleted_product_not_found(
        self,
        db: Session,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        widget: Product,
    ) -> None:
        widget.deleted_at = datetime.now(timezone.utc)
        db.commit()
        outcome = _apply(
            session_factory,
            [_pending(0, widget.id, widget_stock.location_id, 1)],
            clerk_user,
            allow_partial=True,
        )
        assert outcome.failures[0].reason == FailureReason.PRODUCT_NOT_FOUND

    def test_partial_mode_keeps_siblings(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        lid = widget_stock.location_id
        outcome = _apply(
            session_factory,
            [
                _pending(0, widget_stock.product_id, lid, 1),
                _pending(1, 9999, lid, 1),
                _pending(2, gadget.id, lid, 6),
            ],
            clerk_user,
            allow_partial=True,
        )
        assert [a.index for a in outcome.applied] == [0, 2]
        assert [f.index for f in outcome.failures] == [1]
        assert read_stock(session_factory, widget_stock.product_id, lid) == (11, 2)
        assert read_stock(session_factory, gadget.id, lid) == (6, 1)
        assert count_logs(session_factory) == 2

    def test_all_or_nothing_rolls_back_chunk(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        lid = widget_stock.location_id
        outcome = _apply(
            session_factory,
            [
                _pending(0, widget_stock.product_id, lid, 1),
                _pending(1, 9999, lid, 1),
                _pending(2, gadget.id, lid, 6),
            ],
            clerk_user,
            allow_partial=False,
        )
        assert outcome.applied == []
        assert [f.index for f in outcome.failures] == [0, 1, 2]
        assert {f.reason for f in outcome.failures} == {FailureReason.PRODUCT_NOT_FOUND}
        assert all(f.can_retry is False for f in outcome.failures)
        assert outcome.failures[0].message.startswith("Rolled back with its chunk: item 1")
        assert outcome.failures[1].message == "Product with ID 9999 not found"
        assert read_stock(session_factory, widget_stock.product_id, lid) == (10, 1)
        assert read_stock(session_factory, gadget.id, lid) is None
        assert count_logs(session_factory) == 0
        assert audit_actions(session_factory, "INVENTORY_BULK_UPDATE") == []

    def test_quantity_above_column_range_rejected(
        self,
        db: Session,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
    ) -> None:
        widget_stock.quantity = 2**31 - 5
        db.commit()
        pid, lid = widget_stock.product_id, widget_stock.location_id
        outcome = _apply(session_factory, [_pending(0, pid, lid, 10)], clerk_user, allow_partial=True)
        [failure] = outcome.failures
        assert failure.reason == FailureReason.VALIDATION_ERROR
        assert "exceeds the maximum" in failure.message
        assert read_stock(session_factory, pid, lid) == (2**31 - 5, 1)


# ═══════════════════════════════════════════════════════════════════════════════
#  Deadline
# ═══════════════════════════════════════════════════════════════════════════════


class TestChunkDeadline:
    def test_timeout_fails_whole_chunk(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        lid = widget_stock.location_id
        # start, first item check, then well past the budget
        clock = _SteppingClock(0.0, 0.0, 100.0)
        outcome = _apply(
            session_factory,
            [_pending(0, widget_stock.product_id, lid, 1), _pending(1, gadget.id, lid, 1)],
            clerk_user,
            allow_partial=True,
            timeout_seconds=10.0,
            clock=clock,
        )
        assert outcome.applied == []
        assert len(outcome.failures) == 2
        assert {f.reason for f in outcome.failures} == {FailureReason.DATABASE_ERROR}
        assert all(f.can_retry for f in outcome.failures)
        assert "transaction budget" in outcome.failures[0].message
        assert read_stock(session_factory, widget_stock.product_id, lid) == (10, 1)
        assert count_logs(session_factory) == 0


# ═══════════════════════════════════════════════════════════════════════════════
#  Database and unexpected errors
# ═══════════════════════════════════════════════════════════════════════════════


def _fail_reads_for(
    monkeypatch: pytest.MonkeyPatch, product_id: int, error: Exception
) -> None:
    original = SqlStockLevelRepository.read_version

    def _read_version(self: SqlStockLevelRepository, pid: int, lid: int):
        if pid == product_id:
            raise error
        return original(self, pid, lid)

    monkeypatch.setattr(SqlStockLevelRepository, "read_version", _read_version)


class TestApplyErrors:
    def test_partial_mode_contains_database_error_to_its_item(
        self,
        monkeypatch: pytest.MonkeyPatch,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        _fail_reads_for(
            monkeypatch, gadget.id, OperationalError("SELECT", {}, Exception("disk I/O error"))
        )
        lid = widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, widget_stock.product_id, lid, 2), _pending(1, gadget.id, lid, 3)],
            clerk_user,
            allow_partial=True,
        )
        assert [a.index for a in outcome.applied] == [0]
        [failure] = outcome.failures
        assert failure.index == 1
        assert failure.reason == FailureReason.DATABASE_ERROR
        assert failure.can_retry is True
        assert failure.message == "Database error: OperationalError"
        assert read_stock(session_factory, widget_stock.product_id, lid) == (12, 2)
        assert read_stock(session_factory, gadget.id, lid) is None
        assert count_logs(session_factory) == 1

    def test_commit_failure_fails_every_item(
        self,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        def _refuse_commit(session: Session) -> None:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        lid = widget_stock.location_id
        event.listen(session_factory, "before_commit", _refuse_commit)
        try:
            outcome = _apply(
                session_factory,
                [_pending(0, widget_stock.product_id, lid, 2), _pending(1, gadget.id, lid, 3)],
                clerk_user,
                allow_partial=True,
            )
        finally:
            event.remove(session_factory, "before_commit", _refuse_commit)

        assert outcome.applied == []
        assert [f.index for f in outcome.failures] == [0, 1]
        assert {f.reason for f in outcome.failures} == {FailureReason.DATABASE_ERROR}
        assert all(f.can_retry for f in outcome.failures)
        assert read_stock(session_factory, widget_stock.product_id, lid) == (10, 1)
        assert count_logs(session_factory) == 0
        assert audit_actions(session_factory, "INVENTORY_BULK_UPDATE") == []

    @pytest.mark.parametrize("allow_partial", [True, False])
    def test_unexpected_error_fails_only_its_chunk(
        self,
        allow_partial: bool,
        monkeypatch: pytest.MonkeyPatch,
        session_factory: sessionmaker[Session],
        clerk_user: User,
        widget_stock: StockLevel,
        gadget: Product,
    ) -> None:
        _fail_reads_for(monkeypatch, gadget.id, OverflowError("int too large"))
        lid = widget_stock.location_id
        outcome = _apply(
            session_factory,
            [_pending(0, widget_stock.product_id, lid, 2), _pending(1, gadget.id, lid, 3)],
            clerk_user,
            allow_partial=allow_partial,
        )
        assert outcome.applied == []
        assert [f.index for f in outcome.failures] == [0, 1]
        assert {f.reason for f in outcome.failures} == {FailureReason.UNKNOWN_ERROR}
        assert outcome.failures[1].message == "Unexpected error: OverflowError"
        assert read_stock(session_factory, widget_stock.product_id, lid) == (10, 1)
        assert count_logs(session_factory) == 0
