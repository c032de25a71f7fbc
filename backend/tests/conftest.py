"""Shared test fixtures.

Each test gets its own file-backed SQLite database in ``tmp_path``. The
batch service opens one session per chunk, so fixtures commit their rows
and assertions read through fresh sessions (see ``read_stock``).
"""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.database import get_db, get_session_factory, make_engine
from backend.app.core.security import create_access_token, get_password_hash
from backend.app.main import app
from backend.app.middleware.rate_limit import rate_limit_store
from backend.app.models.audit import AuditLog
from backend.app.models.inventory import InventoryLog, Location, Product, StockLevel
from backend.app.models.registry import metadata
from backend.app.models.user import User

# Hashing is slow; every fixture user shares one password
PASSWORD = "correct-horse-42"
_PASSWORD_HASH = get_password_hash(PASSWORD)


# ─── Database ────────────────────────────────────────────────────────────────


@pytest.fixture()
def engine(tmp_path) -> Generator[Engine, None, None]:
    eng = make_engine(f"sqlite:///{tmp_path / 'stockroom-test.db'}")
    metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the per-test database."""

    def _override_get_db() -> Generator[Session, None, None]:
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> Generator[None, None, None]:
    rate_limit_store.reset()
    yield
    rate_limit_store.reset()


# ─── Users ───────────────────────────────────────────────────────────────────


def _make_user(db: Session, username: str, *, is_admin: bool = False, is_approved: bool = True) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        hashed_password=_PASSWORD_HASH,
        is_admin=is_admin,
        is_approved=is_approved,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def admin_user(db: Session) -> User:
    return _make_user(db, "test_admin", is_admin=True)


@pytest.fixture()
def clerk_user(db: Session) -> User:
    return _make_user(db, "test_clerk")


@pytest.fixture()
def pending_user(db: Session) -> User:
    return _make_user(db, "test_pending", is_approved=False)


@pytest.fixture()
def admin_token(admin_user: User) -> str:
    return create_access_token(subject=str(admin_user.id))


@pytest.fixture()
def clerk_token(clerk_user: User) -> str:
    return create_access_token(subject=str(clerk_user.id))


@pytest.fixture()
def pending_token(pending_user: User) -> str:
    return create_access_token(subject=str(pending_user.id))


def auth(token: str) -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Catalog ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def main_store(db: Session) -> Location:
    loc = Location(name="Main Store")
    db.add(loc)
    db.commit()
    return loc


@pytest.fixture()
def back_room(db: Session) -> Location:
    loc = Location(name="Back Room")
    db.add(loc)
    db.commit()
    return loc


@pytest.fixture()
def widget(db: Session) -> Product:
    p = Product(name="Widget", sku="WID-1", low_stock_threshold=5)
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def gadget(db: Session) -> Product:
    p = Product(name="Gadget", sku="GAD-1")
    db.add(p)
    db.commit()
    return p


@pytest.fixture()
def widget_stock(db: Session, widget: Product, main_store: Location) -> StockLevel:
    """Widget at Main Store: quantity 10, version 1."""
    level = StockLevel(product_id=widget.id, location_id=main_store.id, quantity=10, version=1)
    db.add(level)
    db.commit()
    return level


@pytest.fixture()
def many_products(db: Session) -> list[Product]:
    products = [Product(name=f"Bulk Item {i:03d}", sku=f"BULK-{i:03d}") for i in range(120)]
    db.add_all(products)
    db.commit()
    return products


# ─── Read helpers (fresh session each call) ──────────────────────────────────


def read_stock(
    session_factory: sessionmaker[Session], product_id: int, location_id: int
) -> tuple[int, int] | None:
    """``(quantity, version)`` of a stock row, or None if absent."""
    with session_factory() as s:
        row = s.execute(
            select(StockLevel.quantity, StockLevel.version).where(
                StockLevel.product_id == product_id,
                StockLevel.location_id == location_id,
            )
        ).first()
        return (row.quantity, row.version) if row else None


def count_logs(session_factory: sessionmaker[Session], **filters: object) -> int:
    with session_factory() as s:
        stmt = select(func.count(InventoryLog.id))
        for name, value in filters.items():
            stmt = stmt.where(getattr(InventoryLog, name) == value)
        return s.scalar(stmt) or 0


def audit_actions(session_factory: sessionmaker[Session], action: str) -> list[AuditLog]:
    with session_factory() as s:
        return list(
            s.scalars(select(AuditLog).where(AuditLog.action == action).order_by(AuditLog.created_at))
        )
