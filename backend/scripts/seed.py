"""Seed a development database with locations, a small catalog and an admin.

Usage:
    python -m backend.scripts.seed
"""

from __future__ import annotations

from sqlalchemy import select

from backend.app.core.database import SessionLocal, engine
from backend.app.models.inventory import Location, Product
from backend.app.models.registry import metadata
from backend.app.models.user import User
from backend.app.services.user_management import create_user

LOCATIONS = ["Main Store", "Back Room", "Warehouse"]

# (name, sku, base_name, variant, low_stock_threshold)
PRODUCTS: list[tuple[str, str, str | None, str | None, int]] = [
    ("Camping Tent - 2P", "TENT-2P", "Camping Tent", "2P", 5),
    ("Camping Tent - 4P", "TENT-4P", "Camping Tent", "4P", 3),
    ("Sleeping Bag", "BAG-STD", None, None, 10),
    ("Headlamp", "LAMP-HD", None, None, 20),
]


def seed() -> None:
    metadata.create_all(engine)
    with SessionLocal() as db:
        for name in LOCATIONS:
            if not db.scalar(select(Location.id).where(Location.name == name)):
                db.add(Location(name=name))
                print(f"Created location: {name}")

        for name, sku, base_name, variant, threshold in PRODUCTS:
            if not db.scalar(select(Product.id).where(Product.sku == sku)):
                db.add(
                    Product(
                        name=name,
                        sku=sku,
                        base_name=base_name,
                        variant=variant,
                        low_stock_threshold=threshold,
                    )
                )
                print(f"Created product: {name}")

        if not db.scalar(select(User.id).where(User.username == "admin")):
            create_user(
                db, username="admin", password="admin-change-me-1", is_admin=True
            )
            print("Created admin user (password: admin-change-me-1).")

        db.commit()
        print("Seed complete.")


if __name__ == "__main__":
    seed()
