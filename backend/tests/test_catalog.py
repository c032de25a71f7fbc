"""Tests for products and locations — service layer + API endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from backend.app.models.inventory import Location, Product, StockLevel
from backend.app.models.user import User
from backend.app.schemas.inventory import LocationCreate, LocationOut, ProductCreate, ProductOut
from backend.app.schemas.user import UserOut
from backend.app.services.inventory import (
    create_location,
    create_product,
    list_locations,
    list_products,
    list_stock_levels,
    set_product_deleted,
)
from backend.tests.conftest import audit_actions, auth


# ═══════════════════════════════════════════════════════════════════════════════
#  Service-layer tests
# ═══════════════════════════════════════════════════════════════════════════════


class TestCatalogService:
    def test_create_product_audit_log(
        self,
        db: Session,
        session_factory: sessionmaker[Session],
        admin_user: User,
    ) -> None:
        product = create_product(
            db, ProductCreate(name=" Lantern ", sku="LAN-1", low_stock_threshold=2), admin_user.id
        )
        assert product.name == "Lantern"
        [log] = audit_actions(session_factory, "PRODUCT_CREATED")
        assert log.new_values["sku"] == "LAN-1"

    def test_duplicate_sku_rejected(self, db: Session, admin_user: User, widget: Product) -> None:
        with pytest.raises(ValueError, match="already exists"):
            create_product(db, ProductCreate(name="Other", sku="WID-1"), admin_user.id)

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            ProductCreate(name="   ")

    def test_soft_delete_hides_product_and_stock(
        self, db: Session, admin_user: User, widget_stock: StockLevel, widget: Product
    ) -> None:
        set_product_deleted(db, widget.id, deleted=True, user_id=admin_user.id)
        assert list_products(db) == []
        assert [p.id for p in list_products(db, include_deleted=True)] == [widget.id]
        assert list_stock_levels(db) == []

        set_product_deleted(db, widget.id, deleted=False, user_id=admin_user.id)
        assert [p.id for p in list_products(db)] == [widget.id]

    def test_delete_twice_rejected(self, db: Session, admin_user: User, widget: Product) -> None:
        set_product_deleted(db, widget.id, deleted=True, user_id=admin_user.id)
        with pytest.raises(ValueError, match="already deleted"):
            set_product_deleted(db, widget.id, deleted=True, user_id=admin_user.id)

    def test_locations_ordered_and_unique(self, db: Session, admin_user: User) -> None:
        create_location(db, LocationCreate(name="Zeta"), admin_user.id)
        create_location(db, LocationCreate(name="Alpha"), admin_user.id)
        assert [loc.name for loc in list_locations(db)] == ["Alpha", "Zeta"]
        with pytest.raises(ValueError, match="already exists"):
            create_location(db, LocationCreate(name="alpha"), admin_user.id)


# ═══════════════════════════════════════════════════════════════════════════════
#  API tests
# ═══════════════════════════════════════════════════════════════════════════════


class TestProductAPI:
    def test_admin_creates_product(self, client: TestClient, admin_token: str) -> None:
        resp = client.post(
            "/api/v1/products",
            json={"name": "Stove", "sku": "STV-1", "low_stock_threshold": 3},
            headers=auth(admin_token),
        )
        assert resp.status_code == 201
        assert resp.json()["sku"] == "STV-1"

    def test_clerk_cannot_create(self, client: TestClient, clerk_token: str) -> None:
        resp = client.post("/api/v1/products", json={"name": "Stove"}, headers=auth(clerk_token))
        assert resp.status_code == 403

    def test_clerk_can_list(self, client: TestClient, clerk_token: str, widget: Product) -> None:
        resp = client.get("/api/v1/products", headers=auth(clerk_token))
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json()] == ["Widget"]

    def test_delete_and_restore(
        self, client: TestClient, admin_token: str, clerk_token: str, widget_stock: StockLevel
    ) -> None:
        pid, lid = widget_stock.product_id, widget_stock.location_id
        resp = client.delete(f"/api/v1/products/{pid}", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["deleted_at"] is not None

        batch = client.post(
            "/api/v1/inventory/batch-adjust",
            json={"adjustments": [{"productId": pid, "locationId": lid, "delta": 1}]},
            headers=auth(clerk_token),
        )
        assert batch.json()["failures"][0]["reason"] == "PRODUCT_NOT_FOUND"

        resp = client.post(f"/api/v1/products/{pid}/restore", headers=auth(admin_token))
        assert resp.status_code == 200
        assert resp.json()["deleted_at"] is None

    def test_delete_missing_404(self, client: TestClient, admin_token: str) -> None:
        resp = client.delete("/api/v1/products/9999", headers=auth(admin_token))
        assert resp.status_code == 404


class TestLocationAPI:
    def test_create_and_list(self, client: TestClient, admin_token: str, clerk_token: str) -> None:
        resp = client.post("/api/v1/locations", json={"name": "Depot"}, headers=auth(admin_token))
        assert resp.status_code == 201
        listing = client.get("/api/v1/locations", headers=auth(clerk_token)).json()
        assert [loc["name"] for loc in listing] == ["Depot"]

    def test_duplicate_400(self, client: TestClient, admin_token: str, main_store: Location) -> None:
        resp = client.post(
            "/api/v1/locations", json={"name": "Main Store"}, headers=auth(admin_token)
        )
        assert resp.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════════
#  Response models
# ═══════════════════════════════════════════════════════════════════════════════


class TestResponseModels:
    def test_built_from_orm_rows(
        self, widget: Product, main_store: Location, clerk_user: User
    ) -> None:
        product = ProductOut.model_validate(widget)
        assert (product.id, product.sku, product.low_stock_threshold) == (widget.id, "WID-1", 5)
        assert product.deleted_at is None

        location = LocationOut.model_validate(main_store)
        assert (location.name, location.is_active) == ("Main Store", True)

        user = UserOut.model_validate(clerk_user)
        assert user.username == "test_clerk"
        assert user.is_approved is True
        assert not hasattr(user, "hashed_password")
