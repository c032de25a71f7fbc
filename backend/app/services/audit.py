from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from backend.app.models.audit import AuditLog


def log_action(
    db: Session,
    *,
    user_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: str,
    changes: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> None:
    """Add one row to ``audit_logs``.

    Never commits: the row lands in whatever transaction the caller is in,
    so it is rolled back together with the change it describes.
    """
    db.add(
        AuditLog(
            table_name=resource_type,
            record_id=resource_id,
            action=action,
            changed_by=user_id,
            new_values=changes,
            ip_address=ip_address,
        )
    )


def log_bulk_inventory_update(
    db: Session,
    *,
    user_id: UUID,
    batch_id: str,
    chunk_number: int,
    updates: list[dict[str, Any]],
    note: str | None = None,
    ip_address: str | None = None,
) -> None:
    log_action(
        db,
        user_id=user_id,
        action="INVENTORY_BULK_UPDATE",
        resource_type="stock_levels",
        resource_id=batch_id,
        ip_address=ip_address,
        changes={
            "chunk": chunk_number,
            "affected_count": len(updates),
            "note": note,
            "updates": updates,
        },
    )
