"""
Admin Operations API Endpoints.

Back-office review of posting failures and the audit trail.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import utcnow
from barbershop.app.core.guards import require_admin
from barbershop.app.db.session import get_db
from barbershop.app.models.reconciliation_issue import ReconciliationIssue
from barbershop.app.models.billing_enums import IssueStatus
from barbershop.app.schemas.ledger import AuditLogResponse, ReconciliationIssueResponse
from barbershop.app.services.audit import get_audit_trail, log_event, AuditAction

router = APIRouter(prefix="/admin", tags=["Admin - Ops"])


@router.get("/reconciliation-issues", response_model=List[ReconciliationIssueResponse])
async def list_reconciliation_issues(
    issue_status: Optional[IssueStatus] = Query(IssueStatus.OPEN, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(ReconciliationIssue).order_by(ReconciliationIssue.created_at.desc())
    if issue_status:
        query = query.where(ReconciliationIssue.status == issue_status)

    result = await db.execute(query.limit(limit))
    return [ReconciliationIssueResponse.model_validate(i) for i in result.scalars().all()]


@router.post("/reconciliation-issues/{issue_id}/resolve", response_model=ReconciliationIssueResponse)
async def resolve_reconciliation_issue(
    issue_id: UUID = Path(..., description="Reconciliation issue ID"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Mark an issue resolved once the ledger has been repaired by hand."""
    issue = await db.get(ReconciliationIssue, issue_id)
    if not issue:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reconciliation issue not found")

    if issue.status != IssueStatus.RESOLVED:
        await db.execute(
            update(ReconciliationIssue)
            .where(ReconciliationIssue.id == issue_id)
            .values(status=IssueStatus.RESOLVED, resolved_at=utcnow())
        )
        await log_event(
            db=db,
            action=AuditAction.RECONCILIATION_ISSUE_RESOLVED,
            entity="reconciliation_issue",
            entity_id=issue_id,
            actor_id=current_user.get("sub"),
            actor_username=current_user.get("username"),
            metadata={"operation": issue.operation, "reference_id": issue.reference_id},
        )
        await db.commit()
        await db.refresh(issue)

    return ReconciliationIssueResponse.model_validate(issue)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    entity: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    logs = await get_audit_trail(db, entity=entity, entity_id=entity_id, action=action, limit=limit)
    return [AuditLogResponse.model_validate(entry) for entry in logs]
