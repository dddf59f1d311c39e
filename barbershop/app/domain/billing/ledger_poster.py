"""
Commission & Ledger Poster (Domain Logic).

Marks a payment intent as paid and records its financial effects:
a credit for the full amount and, when the payment is for an
appointment, the barber's commission with its paired debit.
Must be transactional and idempotent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update, func, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import utcnow
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.barber import Barber
from barbershop.app.models.commission import Commission
from barbershop.app.models.ledger_entry import LedgerEntry
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.reconciliation_issue import ReconciliationIssue
from barbershop.app.models.billing_enums import (
    CommissionStatus, LedgerCategory, LedgerEntryType, LedgerReferenceKind,
    PaymentStatus, PaymentType
)
from barbershop.app.services.audit import AuditAction, log_event

logger = logging.getLogger("barbershop.ledger")


@dataclass
class PostingResult:
    success: bool
    error: Optional[str] = None
    already_paid: bool = False
    commission_id: Optional[UUID] = None


def calculate_commission_cents(amount_cents: int, percentage) -> int:
    """Commission in cents, rounded half-up (1005 at 50% -> 503)."""
    raw = Decimal(amount_cents) * Decimal(str(percentage)) / Decimal(100)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class LedgerPoster:

    @staticmethod
    async def get_balance(db: AsyncSession) -> int:
        """Cash position: sum of credits minus sum of debits, in cents."""
        signed = case(
            (LedgerEntry.entry_type == LedgerEntryType.CREDIT, LedgerEntry.amount_cents),
            else_=-LedgerEntry.amount_cents,
        )
        result = await db.execute(select(func.coalesce(func.sum(signed), 0)))
        return int(result.scalar_one())

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        category: Optional[LedgerCategory] = None,
        payment_intent_id: Optional[UUID] = None,
        barber_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> list[LedgerEntry]:
        query = select(LedgerEntry).order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.created_at.desc())
        if category:
            query = query.where(LedgerEntry.category == category)
        if payment_intent_id:
            query = query.where(LedgerEntry.payment_intent_id == payment_intent_id)
        if barber_id:
            query = query.where(LedgerEntry.barber_id == barber_id)

        result = await db.execute(query.limit(limit))
        return result.scalars().all()

    @staticmethod
    async def append_entry(
        db: AsyncSession,
        entry_type: LedgerEntryType,
        category: LedgerCategory,
        amount_cents: int,
        description: str,
        reference_kind: Optional[LedgerReferenceKind] = None,
        reference_id: Optional[UUID] = None,
        payment_intent_id: Optional[UUID] = None,
        barber_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """Append one immutable entry, snapshotting the running balance."""
        balance = await LedgerPoster.get_balance(db)
        signed = amount_cents if entry_type == LedgerEntryType.CREDIT else -amount_cents

        entry = LedgerEntry(
            entry_type=entry_type,
            category=category,
            amount_cents=amount_cents,
            description=description,
            reference_kind=reference_kind,
            reference_id=reference_id,
            payment_intent_id=payment_intent_id,
            barber_id=barber_id,
            balance_after_cents=balance + signed,
            occurred_at=utcnow(),
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def record_issue(
        db: AsyncSession,
        operation: str,
        reference_id: Optional[UUID],
        error_message: str,
        payload: Optional[dict] = None,
    ) -> ReconciliationIssue:
        issue = ReconciliationIssue(
            operation=operation,
            reference_id=str(reference_id) if reference_id else None,
            error_message=error_message,
            payload=payload,
        )
        db.add(issue)
        await db.flush()
        return issue

    @staticmethod
    async def _post(db: AsyncSession, intent_id: UUID, paid_at: datetime) -> PostingResult:
        # Only one worker can move the intent to PAID
        result = await db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.id == intent_id,
                PaymentIntent.status.notin_([PaymentStatus.PAID, PaymentStatus.REFUNDED]),
            )
            .values(status=PaymentStatus.PAID, paid_at=paid_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.info("Payment intent %s already settled by another worker", intent_id)
            return PostingResult(success=True, already_paid=True)

        intent = await db.get(PaymentIntent, intent_id, populate_existing=True)

        category = (
            LedgerCategory.SUBSCRIPTION_PAYMENT
            if intent.type == PaymentType.SUBSCRIPTION
            else LedgerCategory.SERVICE_PAYMENT
        )
        await LedgerPoster.append_entry(
            db,
            entry_type=LedgerEntryType.CREDIT,
            category=category,
            amount_cents=intent.amount_cents,
            description="Subscription payment" if category == LedgerCategory.SUBSCRIPTION_PAYMENT else "Service payment",
            reference_kind=LedgerReferenceKind.PAYMENT_INTENT,
            reference_id=intent.id,
            payment_intent_id=intent.id,
        )

        commission_id = None
        if intent.appointment_id:
            appointment = await db.get(Appointment, intent.appointment_id)
            barber = await db.get(Barber, appointment.barber_id) if appointment else None
            if barber:
                commission_cents = calculate_commission_cents(intent.amount_cents, barber.commission_percentage)
                commission = Commission(
                    barber_id=barber.id,
                    appointment_id=appointment.id,
                    payment_intent_id=intent.id,
                    base_amount_cents=intent.amount_cents,
                    percentage=barber.commission_percentage,
                    commission_amount_cents=commission_cents,
                    status=CommissionStatus.APPROVED,
                )
                db.add(commission)
                await db.flush()
                commission_id = commission.id

                await LedgerPoster.append_entry(
                    db,
                    entry_type=LedgerEntryType.DEBIT,
                    category=LedgerCategory.COMMISSION,
                    amount_cents=commission_cents,
                    description=f"Commission for {barber.name}",
                    reference_kind=LedgerReferenceKind.COMMISSION,
                    reference_id=commission.id,
                    barber_id=barber.id,
                )

        await log_event(
            db,
            action=AuditAction.PAYMENT_CONFIRMED,
            entity="payment_intent",
            entity_id=intent.id,
            metadata={"amount_cents": intent.amount_cents, "commission_id": str(commission_id) if commission_id else None},
        )
        return PostingResult(success=True, commission_id=commission_id)

    @staticmethod
    async def post_payment_confirmed(
        db: AsyncSession,
        payment_intent_id: UUID,
        paid_at: Optional[datetime] = None,
    ) -> PostingResult:
        """
        Mark a payment intent paid and post its ledger effects.

        Flow:
        1. Load intent; already PAID -> success, nothing posted
        2. Conditional update to PAID (+paid_at)
        3. Credit for the full amount referencing the intent
        4. If linked to an appointment: APPROVED commission for the barber
           and a paired commission debit
        5. Audit entry

        Steps 2-5 run in a SAVEPOINT. A storage failure rolls them back
        together and is recorded as a ReconciliationIssue.

        Args:
            db: Database session (caller commits)
            payment_intent_id: Intent confirmed by the provider
            paid_at: Provider payment time (defaults to now)

        Returns:
            PostingResult
        """
        intent = await db.get(PaymentIntent, payment_intent_id)
        if not intent:
            return PostingResult(success=False, error=f"Payment intent {payment_intent_id} not found")

        if intent.status == PaymentStatus.PAID:
            return PostingResult(success=True, already_paid=True)

        try:
            async with db.begin_nested():
                return await LedgerPoster._post(db, payment_intent_id, paid_at or utcnow())
        except SQLAlchemyError as exc:
            logger.error("Ledger posting failed for payment intent %s: %s", payment_intent_id, exc)
            await LedgerPoster.record_issue(
                db,
                operation="post_payment_confirmed",
                reference_id=payment_intent_id,
                error_message=str(exc),
                payload={"payment_intent_id": str(payment_intent_id)},
            )
            return PostingResult(success=False, error=f"Ledger posting failed: {exc.__class__.__name__}")
