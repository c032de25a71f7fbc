"""Versioned access to ``stock_levels`` rows."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import VersionConflictError
from backend.app.models.inventory import StockLevel


@dataclass(frozen=True)
class StockSnapshot:
    quantity: int
    version: int
    exists: bool = True


ABSENT = StockSnapshot(quantity=0, version=0, exists=False)


class StockLevelRepository(ABC):
    @abstractmethod
    def read_version(self, product_id: int, location_id: int) -> StockSnapshot:
        """Return the current quantity and version; an absent row reads as 0/0."""

    @abstractmethod
    def apply_if_version_matches(
        self, product_id: int, location_id: int, expected_version: int, delta: int
    ) -> StockSnapshot:
        """Add *delta* and bump the version, only if the row is still at
        *expected_version*. Raises ``VersionConflictError`` otherwise."""


class SqlStockLevelRepository(StockLevelRepository):
    """Repository bound to one SQLAlchemy session (and its transaction)."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def read_version(self, product_id: int, location_id: int) -> StockSnapshot:
        row = self._session.execute(
            select(StockLevel.quantity, StockLevel.version).where(
                StockLevel.product_id == product_id,
                StockLevel.location_id == location_id,
            )
        ).first()
        if row is None:
            return ABSENT
        return StockSnapshot(quantity=row.quantity, version=row.version)

    def apply_if_version_matches(
        self, product_id: int, location_id: int, expected_version: int, delta: int
    ) -> StockSnapshot:
        current = self.read_version(product_id, location_id)
        if not current.exists:
            if expected_version != 0:
                raise VersionConflictError(product_id, location_id, expected_version)
            self._create_row(product_id, location_id)
            current = StockSnapshot(quantity=0, version=0)

        result = self._session.execute(
            update(StockLevel)
            .where(
                StockLevel.product_id == product_id,
                StockLevel.location_id == location_id,
                StockLevel.version == expected_version,
            )
            .values(
                quantity=StockLevel.quantity + delta,
                version=StockLevel.version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise VersionConflictError(product_id, location_id, expected_version)
        return StockSnapshot(quantity=current.quantity + delta, version=expected_version + 1)

    def _create_row(self, product_id: int, location_id: int) -> None:
        try:
            self._session.execute(
                insert(StockLevel).values(
                    product_id=product_id, location_id=location_id, quantity=0, version=0
                )
            )
        except IntegrityError as exc:
            # Another writer created the row first
            raise VersionConflictError(product_id, location_id, 0) from exc
