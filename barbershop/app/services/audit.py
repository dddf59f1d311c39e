"""
Audit logging service for appointment and payment events.

Entries are added to the caller's transaction; they are committed (or
rolled back) together with the change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from barbershop.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    APPOINTMENT_CREATED = "APPOINTMENT_CREATED"
    APPOINTMENT_RESCHEDULED = "APPOINTMENT_RESCHEDULED"
    APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
    APPOINTMENT_STARTED = "APPOINTMENT_STARTED"
    APPOINTMENT_COMPLETED = "APPOINTMENT_COMPLETED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    APPOINTMENT_NO_SHOW = "APPOINTMENT_NO_SHOW"

    PAYMENT_INTENT_CREATED = "PAYMENT_INTENT_CREATED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    COMMISSION_REVERSED = "COMMISSION_REVERSED"

    RECONCILIATION_ISSUE_RESOLVED = "RECONCILIATION_ISSUE_RESOLVED"


async def log_event(
    db: AsyncSession,
    action: str,
    entity: str,
    entity_id: Optional[Any] = None,
    actor_id: Optional[str] = None,
    actor_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Record an audit event in the current transaction.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        entity: Kind of record acted upon, e.g. "appointment"
        entity_id: Id of that record
        actor_id: Subject of the authenticated user, None for system actions
        actor_username: Username of actor
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta_data=metadata,
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity: Optional[str] = None,
    entity_id: Optional[Any] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity:
        query = query.where(AuditLog.entity == entity)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == str(entity_id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
