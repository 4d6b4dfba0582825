"""Audit logging utility for admin actions."""

from __future__ import annotations

from sqlalchemy.orm import Session

from .. import models


def log_admin_action(
    db: Session,
    actor_id: int,
    action: str,
    target_type: str | None = None,
    target_id: int | str | None = None,
    note: str | None = None,
) -> models.AuditLog:
    """
    Add an admin action to the audit log.

    The entry joins the caller's transaction: it is written when the action
    itself commits and disappears with it on rollback.

    Args:
        db: Database session
        actor_id: ID of the admin performing the action
        action: Action name (e.g., "delete_user", "delete_video")
        target_type: Type of target (e.g., "user", "video", "comment")
        target_id: ID of the target entity
        note: Additional context about the action
    """
    audit_entry = models.AuditLog(
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=str(target_id) if target_id is not None else None,
        note=note,
    )
    db.add(audit_entry)
    return audit_entry
