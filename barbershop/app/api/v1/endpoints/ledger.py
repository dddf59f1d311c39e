"""
Ledger API Endpoints (Admin only).

Read-only views over the append-only ledger and barber commissions.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.guards import require_admin
from barbershop.app.db.session import get_db
from barbershop.app.domain.billing.ledger_poster import LedgerPoster
from barbershop.app.models.commission import Commission
from barbershop.app.models.billing_enums import CommissionStatus, LedgerCategory
from barbershop.app.schemas.ledger import BalanceResponse, CommissionResponse, LedgerEntryResponse

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/entries", response_model=List[LedgerEntryResponse])
async def list_ledger_entries(
    category: Optional[LedgerCategory] = Query(None),
    payment_intent_id: Optional[UUID] = Query(None),
    barber_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    entries = await LedgerPoster.list_entries(
        db, category=category, payment_intent_id=payment_intent_id, barber_id=barber_id, limit=limit
    )
    return [LedgerEntryResponse.model_validate(e) for e in entries]


@router.get("/balance", response_model=BalanceResponse)
async def get_ledger_balance(
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Cash position derived from the ledger (credits minus debits)."""
    return BalanceResponse(balance_cents=await LedgerPoster.get_balance(db))


@router.get("/commissions", response_model=List[CommissionResponse])
async def list_commissions(
    barber_id: Optional[UUID] = Query(None),
    commission_status: Optional[CommissionStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(Commission).order_by(Commission.created_at.desc())
    if barber_id:
        query = query.where(Commission.barber_id == barber_id)
    if commission_status:
        query = query.where(Commission.status == commission_status)

    result = await db.execute(query.limit(limit))
    return [CommissionResponse.model_validate(c) for c in result.scalars().all()]
