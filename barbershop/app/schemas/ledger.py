"""
Ledger, commission and back-office schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any
from uuid import UUID

from barbershop.app.models.billing_enums import (
    CommissionStatus, IssueStatus, LedgerCategory, LedgerEntryType, LedgerReferenceKind
)


class LedgerEntryResponse(BaseModel):
    """Schema for displaying ledger entries."""
    id: UUID
    entry_type: LedgerEntryType
    category: LedgerCategory
    amount_cents: int
    description: Optional[str]
    reference_kind: Optional[LedgerReferenceKind]
    reference_id: Optional[UUID]
    payment_intent_id: Optional[UUID]
    barber_id: Optional[UUID]
    balance_after_cents: Optional[int]
    occurred_at: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    balance_cents: int


class CommissionResponse(BaseModel):
    """Schema for displaying commissions."""
    id: UUID
    barber_id: UUID
    appointment_id: Optional[UUID]
    payment_intent_id: Optional[UUID]
    base_amount_cents: int
    percentage: Decimal
    commission_amount_cents: int
    status: CommissionStatus
    paid_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class ReconciliationIssueResponse(BaseModel):
    id: UUID
    operation: str
    reference_id: Optional[str]
    error_message: str
    payload: Optional[Dict[str, Any]]
    status: IssueStatus
    created_at: datetime
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[str]
    actor_username: Optional[str]
    action: str
    entity: str
    entity_id: Optional[str]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime

    class Config:
        from_attributes = True
