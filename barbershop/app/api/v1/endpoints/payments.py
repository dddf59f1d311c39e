"""
Payment API Endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.guards import require_staff
from barbershop.app.db.session import get_db
from barbershop.app.domain.billing.gateway import BillingGateway, get_billing_gateway
from barbershop.app.domain.billing.payment_service import PaymentService
from barbershop.app.schemas.payment import PaymentIntentCreate, PaymentIntentResponse

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/intents", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_intent(
    payload: PaymentIntentCreate,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    gateway: BillingGateway = Depends(get_billing_gateway),
):
    """
    Create a payment intent and its PIX billing.

    Returns 502 when the provider call fails; the intent is kept as FAILED.
    Repeating a request with the same idempotency_key returns the first intent.
    """
    intent = await PaymentService.create_payment_intent(
        db,
        gateway,
        client_id=payload.client_id,
        amount_cents=payload.amount_cents,
        appointment_id=payload.appointment_id,
        payment_type=payload.type,
        description=payload.description,
        idempotency_key=payload.idempotency_key,
        actor_id=current_user.get("sub"),
    )
    return PaymentIntentResponse.model_validate(intent)


@router.get("/intents/{payment_intent_id}", response_model=PaymentIntentResponse)
async def get_payment_intent(
    payment_intent_id: UUID,
    current_user: dict = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    intent = await PaymentService.get_intent(db, payment_intent_id)
    return PaymentIntentResponse.model_validate(intent)
