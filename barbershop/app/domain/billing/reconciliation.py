"""
Payment Reconciliation Engine.

Maps provider events onto payment intent and subscription transitions.
Every handler is idempotent per transition: re-applying an event to a
record that already reached the target state changes nothing.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import utcnow
from barbershop.app.domain.billing.ledger_poster import LedgerPoster
from barbershop.app.models.commission import Commission
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.subscription import Subscription
from barbershop.app.models.billing_enums import (
    CommissionStatus, LedgerCategory, LedgerEntryType, LedgerReferenceKind,
    PaymentStatus, SubscriptionStatus, WebhookEventType
)
from barbershop.app.schemas.webhook import WebhookBillingData
from barbershop.app.services.audit import AuditAction, log_event

logger = logging.getLogger("barbershop.reconciliation")

# Intents in these states are never moved by expiry or cancellation events
_SETTLED = [PaymentStatus.PAID, PaymentStatus.REFUNDED]


@dataclass
class ReconciliationOutcome:
    """
    Result of handling one event.

    error is a business failure (recorded on the webhook event, answered
    with 200); action names what was done, for logs and tests.
    """
    error: Optional[str] = None
    action: str = "noop"


async def _intent_by_provider_ref(db: AsyncSession, provider_ref: str) -> Optional[PaymentIntent]:
    result = await db.execute(select(PaymentIntent).where(PaymentIntent.provider_ref == provider_ref))
    return result.scalar_one_or_none()


def _metadata_intent_id(data: WebhookBillingData) -> Optional[UUID]:
    raw = (data.metadata or {}).get("payment_intent_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        logger.warning("Ignoring malformed payment_intent_id %r in billing %s metadata", raw, data.id)
        return None


class ReconciliationEngine:

    @staticmethod
    async def dispatch(
        db: AsyncSession,
        event_type: WebhookEventType,
        data: WebhookBillingData,
    ) -> ReconciliationOutcome:
        handler = _HANDLERS.get(event_type)
        if handler is None:
            logger.info("Unhandled webhook event type for billing %s", data.id)
            return ReconciliationOutcome(action="ignored")
        return await handler(db, event_type, data)

    @staticmethod
    async def handle_paid(db: AsyncSession, event_type: WebhookEventType, data: WebhookBillingData) -> ReconciliationOutcome:
        intent_id = _metadata_intent_id(data)
        if intent_id is None:
            intent = await _intent_by_provider_ref(db, data.id)
            if not intent:
                return ReconciliationOutcome(error="Payment intent not found")
            intent_id = intent.id

        result = await LedgerPoster.post_payment_confirmed(db, intent_id, paid_at=data.paid_at)
        if not result.success:
            return ReconciliationOutcome(error=result.error or "Processing failed")
        if result.already_paid:
            return ReconciliationOutcome(action="already_paid")
        return ReconciliationOutcome(action="paid")

    @staticmethod
    async def handle_closed(db: AsyncSession, event_type: WebhookEventType, data: WebhookBillingData) -> ReconciliationOutcome:
        target = PaymentStatus.EXPIRED if event_type == WebhookEventType.BILLING_EXPIRED else PaymentStatus.CANCELLED

        result = await db.execute(
            update(PaymentIntent)
            .where(
                PaymentIntent.provider_ref == data.id,
                PaymentIntent.status.notin_(_SETTLED + [target]),
            )
            .values(status=target, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return ReconciliationOutcome()
        return ReconciliationOutcome(action=target.value)

    @staticmethod
    async def handle_refunded(db: AsyncSession, event_type: WebhookEventType, data: WebhookBillingData) -> ReconciliationOutcome:
        """
        Refund a payment intent.

        Only a PAID intent can be refunded. Posts a refund debit and reverses
        the barber's commission unless it was already paid out, in which case
        it is left for manual review. A refund for an intent that never got
        paid posts nothing and is recorded as a reconciliation issue.
        """
        intent = await _intent_by_provider_ref(db, data.id)
        if not intent:
            return ReconciliationOutcome()

        result = await db.execute(
            update(PaymentIntent)
            .where(PaymentIntent.id == intent.id, PaymentIntent.status == PaymentStatus.PAID)
            .values(status=PaymentStatus.REFUNDED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await db.scalar(select(PaymentIntent.status).where(PaymentIntent.id == intent.id))
            if current == PaymentStatus.REFUNDED:
                return ReconciliationOutcome(action="already_refunded")

            error = f"Refund for unpaid payment intent (status {current.value})"
            logger.warning("Refund event for billing %s on payment intent %s in status %s", data.id, intent.id, current.value)
            await LedgerPoster.record_issue(
                db,
                operation="handle_refunded",
                reference_id=intent.id,
                error_message=error,
                payload=data.model_dump(mode="json", by_alias=True),
            )
            return ReconciliationOutcome(error=error)

        refund_cents = data.paid_amount or intent.amount_cents
        await LedgerPoster.append_entry(
            db,
            entry_type=LedgerEntryType.DEBIT,
            category=LedgerCategory.REFUND,
            amount_cents=refund_cents,
            description="Payment refund",
            reference_kind=LedgerReferenceKind.PAYMENT_INTENT,
            reference_id=intent.id,
            payment_intent_id=intent.id,
        )

        commission_result = await db.execute(select(Commission).where(Commission.payment_intent_id == intent.id))
        commission = commission_result.scalar_one_or_none()
        if commission and commission.status == CommissionStatus.PAID:
            logger.warning(
                "Commission %s for refunded payment intent %s was already paid out; left for manual review",
                commission.id, intent.id,
            )
        elif commission and commission.status != CommissionStatus.CANCELLED:
            reversed_rows = await db.execute(
                update(Commission)
                .where(
                    Commission.id == commission.id,
                    Commission.status.in_([CommissionStatus.PENDING, CommissionStatus.APPROVED]),
                )
                .values(status=CommissionStatus.CANCELLED, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if reversed_rows.rowcount:
                await LedgerPoster.append_entry(
                    db,
                    entry_type=LedgerEntryType.CREDIT,
                    category=LedgerCategory.ADJUSTMENT,
                    amount_cents=commission.commission_amount_cents,
                    description="Commission reversal for refunded payment",
                    reference_kind=LedgerReferenceKind.COMMISSION,
                    reference_id=commission.id,
                    barber_id=commission.barber_id,
                )
                await log_event(
                    db,
                    action=AuditAction.COMMISSION_REVERSED,
                    entity="commission",
                    entity_id=commission.id,
                    metadata={"payment_intent_id": str(intent.id)},
                )

        await log_event(
            db,
            action=AuditAction.PAYMENT_REFUNDED,
            entity="payment_intent",
            entity_id=intent.id,
            metadata={"refund_cents": refund_cents},
        )
        return ReconciliationOutcome(action="refunded")

    @staticmethod
    async def handle_subscription(db: AsyncSession, event_type: WebhookEventType, data: WebhookBillingData) -> ReconciliationOutcome:
        now = utcnow()
        if event_type == WebhookEventType.SUBSCRIPTION_CANCELLED:
            target = SubscriptionStatus.CANCELLED
            values = {"status": target, "cancelled_at": now, "updated_at": now}
        else:
            target = SubscriptionStatus.PAST_DUE
            values = {"status": target, "updated_at": now}

        result = await db.execute(
            update(Subscription)
            .where(
                Subscription.provider_subscription_id == data.id,
                Subscription.status.notin_([SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED, target]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return ReconciliationOutcome()
        return ReconciliationOutcome(action=target.value)


_HANDLERS = {
    WebhookEventType.BILLING_PAID: ReconciliationEngine.handle_paid,
    WebhookEventType.BILLING_EXPIRED: ReconciliationEngine.handle_closed,
    WebhookEventType.BILLING_CANCELLED: ReconciliationEngine.handle_closed,
    WebhookEventType.BILLING_REFUNDED: ReconciliationEngine.handle_refunded,
    WebhookEventType.SUBSCRIPTION_CANCELLED: ReconciliationEngine.handle_subscription,
    WebhookEventType.SUBSCRIPTION_PAYMENT_FAILED: ReconciliationEngine.handle_subscription,
}
