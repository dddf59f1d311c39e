"""
Commission & Ledger Poster Tests.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from barbershop.app.domain.billing.ledger_poster import LedgerPoster, calculate_commission_cents
from barbershop.app.domain.scheduling.booking_service import BookingService
from barbershop.app.models.commission import Commission
from barbershop.app.models.ledger_entry import LedgerEntry
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.reconciliation_issue import ReconciliationIssue
from barbershop.app.models.billing_enums import (
    CommissionStatus, IssueStatus, LedgerCategory, LedgerEntryType, LedgerReferenceKind,
    PaymentStatus, PaymentType
)

START = datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc)


@pytest.fixture
async def paid_appointment_intent(db_session, shop):
    appointment = await BookingService.try_book(
        db_session, shop["client"].id, shop["barber"].id, shop["service"].id, START
    )
    intent = PaymentIntent(
        client_id=shop["client"].id,
        appointment_id=appointment.id,
        amount_cents=10000,
        type=PaymentType.ONE_TIME,
        status=PaymentStatus.PROCESSING,
        provider_ref="bill_test_001",
        idempotency_key=f"pi_{uuid.uuid4()}",
    )
    db_session.add(intent)
    await db_session.commit()
    return intent


async def all_entries(db):
    result = await db.execute(select(LedgerEntry).order_by(LedgerEntry.occurred_at))
    return result.scalars().all()


@pytest.mark.parametrize(
    "amount_cents, percentage, expected",
    [
        (10000, 40, 4000),
        (10000, Decimal("0"), 0),
        (1005, Decimal("50"), 503),
        (999, Decimal("33.33"), 333),
        (3500, Decimal("12.5"), 438),
    ],
)
def test_commission_rounds_half_up(amount_cents, percentage, expected):
    assert calculate_commission_cents(amount_cents, percentage) == expected


@pytest.mark.asyncio
async def test_payment_confirmation_posts_credit_and_commission(db_session, shop, paid_appointment_intent):
    result = await LedgerPoster.post_payment_confirmed(db_session, paid_appointment_intent.id)
    await db_session.commit()

    assert result.success
    assert not result.already_paid

    await db_session.refresh(paid_appointment_intent)
    assert paid_appointment_intent.status == PaymentStatus.PAID
    assert paid_appointment_intent.paid_at is not None

    entries = await all_entries(db_session)
    credit = next(e for e in entries if e.entry_type == LedgerEntryType.CREDIT)
    debit = next(e for e in entries if e.entry_type == LedgerEntryType.DEBIT)

    assert credit.category == LedgerCategory.SERVICE_PAYMENT
    assert credit.amount_cents == 10000
    assert credit.reference_kind == LedgerReferenceKind.PAYMENT_INTENT
    assert credit.reference_id == paid_appointment_intent.id

    commission = (await db_session.execute(select(Commission))).scalar_one()
    assert commission.commission_amount_cents == 4000
    assert commission.base_amount_cents == 10000
    assert commission.status == CommissionStatus.APPROVED
    assert commission.barber_id == shop["barber"].id
    assert result.commission_id == commission.id

    assert debit.category == LedgerCategory.COMMISSION
    assert debit.amount_cents == 4000
    assert debit.reference_kind == LedgerReferenceKind.COMMISSION
    assert debit.reference_id == commission.id
    assert debit.barber_id == shop["barber"].id

    assert await LedgerPoster.get_balance(db_session) == 6000


@pytest.mark.asyncio
async def test_second_confirmation_posts_nothing(db_session, shop, paid_appointment_intent):
    await LedgerPoster.post_payment_confirmed(db_session, paid_appointment_intent.id)
    await db_session.commit()

    again = await LedgerPoster.post_payment_confirmed(db_session, paid_appointment_intent.id)
    await db_session.commit()

    assert again.success
    assert again.already_paid
    assert len(await all_entries(db_session)) == 2
    assert len((await db_session.execute(select(Commission))).scalars().all()) == 1


@pytest.mark.asyncio
async def test_subscription_payment_has_no_commission(db_session, shop):
    intent = PaymentIntent(
        client_id=shop["client"].id,
        amount_cents=8990,
        type=PaymentType.SUBSCRIPTION,
        status=PaymentStatus.PROCESSING,
        idempotency_key=f"pi_{uuid.uuid4()}",
    )
    db_session.add(intent)
    await db_session.commit()

    result = await LedgerPoster.post_payment_confirmed(db_session, intent.id)
    await db_session.commit()

    assert result.success
    assert result.commission_id is None
    entries = await all_entries(db_session)
    assert [(e.category, e.amount_cents) for e in entries] == [(LedgerCategory.SUBSCRIPTION_PAYMENT, 8990)]


@pytest.mark.asyncio
async def test_missing_intent_is_a_failure(db_session, shop):
    result = await LedgerPoster.post_payment_confirmed(db_session, uuid.uuid4())

    assert not result.success
    assert "not found" in result.error


@pytest.mark.asyncio
async def test_posting_failure_rolls_back_and_records_issue(db_session, shop, paid_appointment_intent, mocker):
    mocker.patch.object(
        LedgerPoster, "append_entry", side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))
    )

    result = await LedgerPoster.post_payment_confirmed(db_session, paid_appointment_intent.id)
    await db_session.commit()

    assert not result.success
    assert "OperationalError" in result.error

    await db_session.refresh(paid_appointment_intent)
    assert paid_appointment_intent.status == PaymentStatus.PROCESSING
    assert await all_entries(db_session) == []

    issue = (await db_session.execute(select(ReconciliationIssue))).scalar_one()
    assert issue.operation == "post_payment_confirmed"
    assert issue.reference_id == str(paid_appointment_intent.id)
    assert issue.status == IssueStatus.OPEN


@pytest.mark.asyncio
async def test_balance_snapshots_follow_entries(db_session, shop):
    await LedgerPoster.append_entry(db_session, LedgerEntryType.CREDIT, LedgerCategory.SERVICE_PAYMENT, 5000, "a")
    second = await LedgerPoster.append_entry(db_session, LedgerEntryType.DEBIT, LedgerCategory.EXPENSE, 1200, "b")
    await db_session.commit()

    assert second.balance_after_cents == 3800
    assert await LedgerPoster.get_balance(db_session) == 3800
