"""
Audit logging service
"""
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from hr_approvals.models.audit_log import AuditLog
from hr_approvals.utils.datetime_utils import now_utc
from hr_approvals.utils.json_serializer import sanitize_for_json


def add_audit(
    db: Session,
    actor_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
    at: Optional[datetime] = None,
) -> AuditLog:
    """
    Stage an audit log entry in the caller's transaction (no commit)

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action type (e.g. "CHAIN_REPLACE", "DELEGATION_GRANT")
        entity_type: Type of entity (e.g. "manager_chain", "delegation")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)
        at: Timestamp to record (defaults to now)

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=at or now_utc(),
    )
    db.add(audit_log)
    return audit_log


def log_audit(
    db: Session,
    actor_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Create and commit an audit log entry"""
    audit_log = add_audit(db, actor_id, action, entity_type, entity_id, meta)
    db.commit()
    db.refresh(audit_log)
    return audit_log
