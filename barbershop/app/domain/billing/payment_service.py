"""
Payment Service (Domain Logic).

Creates payment intents and their billing at the provider. The intent is
committed as PENDING before the provider is called, so every charge
attempt leaves a local record even when the provider call fails.
"""

import logging
import uuid
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.exceptions import (
    PaymentProviderError, ResourceNotFoundError, ValidationFailedError
)
from barbershop.app.domain.billing.gateway import BillingCustomer, BillingGateway, CreateBillingRequest
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.client import Client
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.billing_enums import PaymentStatus, PaymentType
from barbershop.app.services.audit import AuditAction, log_event

logger = logging.getLogger("barbershop.payments")

DEFAULT_DESCRIPTION = "Barbershop service"


def new_idempotency_key() -> str:
    return f"pi_{uuid.uuid4()}"


class PaymentService:

    @staticmethod
    async def get_intent(db: AsyncSession, payment_intent_id: UUID) -> PaymentIntent:
        intent = await db.get(PaymentIntent, payment_intent_id)
        if not intent:
            raise ResourceNotFoundError("PaymentIntent", payment_intent_id)
        return intent

    @staticmethod
    async def create_payment_intent(
        db: AsyncSession,
        gateway: BillingGateway,
        client_id: UUID,
        amount_cents: int,
        appointment_id: Optional[UUID] = None,
        payment_type: PaymentType = PaymentType.ONE_TIME,
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> PaymentIntent:
        """
        Create a payment intent and a PIX billing for it.

        Flow:
        1. Replay: an intent with the same idempotency key is returned as is
        2. Validate client (and appointment, when given)
        3. Commit a PENDING intent
        4. Create the billing at the provider
        5. Store provider reference and PIX artifacts, move to PROCESSING

        Args:
            db: Database session (committed here)
            gateway: Billing provider
            client_id: Paying client
            amount_cents: Amount in cents
            appointment_id: Appointment being paid, if any
            payment_type: one_time or subscription
            description: Product name shown on the checkout
            idempotency_key: Caller-supplied key; generated when omitted
            actor_id: Authenticated user, for the audit trail

        Returns:
            The PROCESSING intent

        Raises:
            ResourceNotFoundError: Unknown client or appointment
            ValidationFailedError: Non-positive amount or appointment of another client
            PaymentProviderError: Provider call failed; the intent is left FAILED
        """
        if idempotency_key:
            result = await db.execute(
                select(PaymentIntent).where(PaymentIntent.idempotency_key == idempotency_key)
            )
            existing = result.scalar_one_or_none()
            if existing:
                return existing

        if amount_cents <= 0:
            raise ValidationFailedError("amount_cents must be positive", details={"amount_cents": amount_cents})

        client = await db.get(Client, client_id)
        if not client:
            raise ResourceNotFoundError("Client", client_id)

        if appointment_id:
            appointment = await db.get(Appointment, appointment_id)
            if not appointment:
                raise ResourceNotFoundError("Appointment", appointment_id)
            if appointment.client_id != client_id:
                raise ValidationFailedError(
                    "Appointment belongs to another client",
                    details={"appointment_id": str(appointment_id)},
                )

        intent = PaymentIntent(
            client_id=client_id,
            appointment_id=appointment_id,
            amount_cents=amount_cents,
            type=payment_type,
            status=PaymentStatus.PENDING,
            description=description,
            idempotency_key=idempotency_key or new_idempotency_key(),
        )
        db.add(intent)
        await db.commit()

        try:
            billing = await gateway.create_billing(
                CreateBillingRequest(
                    external_id=str(intent.id),
                    name=description or DEFAULT_DESCRIPTION,
                    amount_cents=amount_cents,
                    customer=BillingCustomer(name=client.name, email=client.email, cellphone=client.phone),
                    metadata={
                        "payment_intent_id": str(intent.id),
                        "client_id": str(client_id),
                        "appointment_id": str(appointment_id) if appointment_id else "",
                    },
                )
            )
        except PaymentProviderError as exc:
            logger.error("Billing creation failed for payment intent %s: %s", intent.id, exc.message)
            intent.status = PaymentStatus.FAILED
            await db.commit()
            raise

        intent.provider_ref = billing.id
        intent.provider_checkout_url = billing.url
        intent.provider_pix_code = billing.pix_code
        intent.provider_qr_code = billing.qr_code
        intent.expires_at = billing.expires_at
        intent.status = PaymentStatus.PROCESSING

        await log_event(
            db,
            action=AuditAction.PAYMENT_INTENT_CREATED,
            entity="payment_intent",
            entity_id=intent.id,
            actor_id=actor_id,
            metadata={"amount_cents": amount_cents, "provider_ref": billing.id},
        )
        await db.commit()
        await db.refresh(intent)

        logger.info("Payment intent %s created (billing %s)", intent.id, billing.id)
        return intent
