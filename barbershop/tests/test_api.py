"""
HTTP API Tests.

Appointments, payments, ledger and back-office endpoints end to end
through the ASGI app.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from barbershop.app.core.exceptions import PaymentProviderError
from barbershop.app.domain.billing.ledger_poster import LedgerPoster
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.billing_enums import PaymentStatus

START = datetime(2030, 1, 7, 13, 0, tzinfo=timezone.utc)


def booking(shop, start=START):
    return {
        "client_id": str(shop["client"].id),
        "barber_id": str(shop["barber"].id),
        "service_id": str(shop["service"].id),
        "start_time": start.isoformat(),
    }


async def book(client, shop, headers, start=START):
    response = await client.post("/v1/appointments", json=booking(shop, start), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_client_can_book(client, shop, client_headers):
    body = await book(client, shop, client_headers)

    assert body["status"] == "scheduled"
    assert body["price_cents"] == 10000
    end = datetime.fromisoformat(body["end_time"].replace("Z", "+00:00"))
    start = datetime.fromisoformat(body["start_time"].replace("Z", "+00:00"))
    assert end - start == timedelta(minutes=30)


@pytest.mark.asyncio
async def test_overlapping_booking_conflicts(client, shop, client_headers):
    await book(client, shop, client_headers)

    response = await client.post(
        "/v1/appointments", json=booking(shop, START + timedelta(minutes=15)), headers=client_headers
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "slot_unavailable"


@pytest.mark.asyncio
async def test_naive_start_time_is_rejected(client, shop, client_headers):
    payload = booking(shop)
    payload["start_time"] = "2030-01-07T10:00:00"

    response = await client.post("/v1/appointments", json=payload, headers=client_headers)

    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"


@pytest.mark.asyncio
async def test_invalid_token_is_unauthorized(client, shop):
    response = await client.get("/v1/appointments", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client, shop):
    response = await client.get("/v1/appointments")

    # FastAPI answers 403 or 401 here depending on its version
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_client_cannot_manage_agenda(client, shop, client_headers):
    appointment = await book(client, shop, client_headers)

    response = await client.post(f"/v1/appointments/{appointment['id']}/confirm", headers=client_headers)

    assert response.status_code == 403
    assert response.json()["error_code"] == "forbidden"


@pytest.mark.asyncio
async def test_lifecycle_and_invalid_transition(client, shop, client_headers, staff_headers):
    appointment = await book(client, shop, client_headers)
    base = f"/v1/appointments/{appointment['id']}"

    confirmed = await client.post(f"{base}/confirm", headers=staff_headers)
    assert confirmed.json()["status"] == "confirmed"

    started = await client.post(f"{base}/start", headers=staff_headers)
    assert started.json()["status"] == "in_progress"

    completed = await client.post(f"{base}/complete", headers=staff_headers)
    assert completed.status_code == 200
    assert completed.json()["appointment"]["status"] == "completed"
    assert completed.json()["payment_intent_id"] is None

    again = await client.post(f"{base}/confirm", headers=staff_headers)
    assert again.status_code == 409
    assert again.json()["error_code"] == "invalid_transition"


@pytest.mark.asyncio
async def test_cancel_frees_the_slot(client, shop, client_headers, staff_headers):
    appointment = await book(client, shop, client_headers)

    cancelled = await client.post(
        f"/v1/appointments/{appointment['id']}/cancel",
        json={"cancelled_reason": "Client called"},
        headers=staff_headers,
    )
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancelled_reason"] == "Client called"

    await book(client, shop, client_headers)


@pytest.mark.asyncio
async def test_reschedule_moves_appointment(client, shop, client_headers, staff_headers):
    appointment = await book(client, shop, client_headers)
    new_start = START + timedelta(hours=2)

    response = await client.patch(
        f"/v1/appointments/{appointment['id']}",
        json={"start_time": new_start.isoformat()},
        headers=staff_headers,
    )

    assert response.status_code == 200
    moved = datetime.fromisoformat(response.json()["start_time"].replace("Z", "+00:00"))
    assert moved.replace(tzinfo=moved.tzinfo or timezone.utc) == new_start


@pytest.mark.asyncio
async def test_list_appointments_for_day(client, shop, client_headers, staff_headers):
    await book(client, shop, client_headers)
    await book(client, shop, client_headers, start=START + timedelta(hours=1))

    response = await client.get("/v1/appointments", params={"date": "2030-01-07"}, headers=staff_headers)
    other_day = await client.get("/v1/appointments", params={"date": "2030-01-08"}, headers=staff_headers)

    assert response.json()["total"] == 2
    assert other_day.json()["total"] == 0


@pytest.mark.asyncio
async def test_complete_with_charge_creates_payment_intent(client, shop, client_headers, staff_headers, fake_gateway):
    appointment = await book(client, shop, client_headers)

    response = await client.post(
        f"/v1/appointments/{appointment['id']}/complete", params={"charge": "true"}, headers=staff_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["payment_intent_id"] is not None
    assert body["checkout_url"].startswith("https://pay.example.test/")

    name, request = fake_gateway.calls[0]
    assert name == "create_billing"
    assert request.amount_cents == 10000
    assert request.name == "Corte"
    assert request.metadata["appointment_id"] == appointment["id"]


@pytest.mark.asyncio
async def test_create_payment_intent(client, shop, staff_headers):
    response = await client.post(
        "/v1/payments/intents",
        json={"client_id": str(shop["client"].id), "amount_cents": 5000, "description": "Barba"},
        headers=staff_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "processing"
    assert body["provider_ref"].startswith("bill_")
    assert body["idempotency_key"].startswith("pi_")

    fetched = await client.get(f"/v1/payments/intents/{body['id']}", headers=staff_headers)
    assert fetched.json()["id"] == body["id"]


@pytest.mark.asyncio
async def test_payment_intent_replay_returns_first_intent(client, shop, staff_headers, fake_gateway):
    payload = {"client_id": str(shop["client"].id), "amount_cents": 5000, "idempotency_key": "order-77"}

    first = await client.post("/v1/payments/intents", json=payload, headers=staff_headers)
    second = await client.post("/v1/payments/intents", json=payload, headers=staff_headers)

    assert first.json()["id"] == second.json()["id"]
    assert len(fake_gateway.calls) == 1


@pytest.mark.asyncio
async def test_provider_failure_answers_502_and_keeps_failed_intent(
    client, db_session, shop, staff_headers, fake_gateway
):
    fake_gateway.fail_with = PaymentProviderError("AbacatePay API error: 503")

    response = await client.post(
        "/v1/payments/intents",
        json={"client_id": str(shop["client"].id), "amount_cents": 5000},
        headers=staff_headers,
    )

    assert response.status_code == 502
    assert response.json()["error_code"] == "payment_provider_error"

    intent = (await db_session.execute(select(PaymentIntent))).scalar_one()
    assert intent.status == PaymentStatus.FAILED


@pytest.mark.asyncio
async def test_payment_intent_rejects_non_positive_amount(client, shop, staff_headers):
    response = await client.post(
        "/v1/payments/intents",
        json={"client_id": str(shop["client"].id), "amount_cents": 0},
        headers=staff_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_payment_intent(client, shop, staff_headers):
    response = await client.get(f"/v1/payments/intents/{uuid.uuid4()}", headers=staff_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


@pytest.mark.asyncio
async def test_ledger_after_paid_webhook(client, shop, staff_headers, admin_headers, sign):
    created = await client.post(
        "/v1/payments/intents",
        json={"client_id": str(shop["client"].id), "amount_cents": 5000},
        headers=staff_headers,
    )
    intent = created.json()
    body, headers = sign({
        "event": "billing.paid",
        "data": {"id": intent["provider_ref"], "status": "PAID", "amount": 5000,
                 "metadata": {"payment_intent_id": intent["id"]}},
    })
    assert (await client.post("/v1/webhooks/abacatepay", content=body, headers=headers)).status_code == 200

    balance = await client.get("/v1/ledger/balance", headers=admin_headers)
    entries = await client.get("/v1/ledger/entries", params={"payment_intent_id": intent["id"]}, headers=admin_headers)

    # No appointment, so no commission
    assert balance.json() == {"balance_cents": 5000}
    assert [(e["entry_type"], e["amount_cents"]) for e in entries.json()] == [("credit", 5000)]


@pytest.mark.asyncio
async def test_ledger_is_admin_only(client, shop, staff_headers):
    response = await client.get("/v1/ledger/balance", headers=staff_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_commissions_listing(client, shop, client_headers, staff_headers, admin_headers, sign):
    appointment = await book(client, shop, client_headers)
    completed = await client.post(
        f"/v1/appointments/{appointment['id']}/complete", params={"charge": "true"}, headers=staff_headers
    )
    intent_id = completed.json()["payment_intent_id"]
    intent = (await client.get(f"/v1/payments/intents/{intent_id}", headers=staff_headers)).json()

    body, headers = sign({
        "event": "billing.paid",
        "data": {"id": intent["provider_ref"], "status": "PAID", "amount": 10000,
                 "metadata": {"payment_intent_id": intent_id}},
    })
    await client.post("/v1/webhooks/abacatepay", content=body, headers=headers)

    response = await client.get("/v1/ledger/commissions", params={"status": "approved"}, headers=admin_headers)

    commissions = response.json()
    assert len(commissions) == 1
    assert commissions[0]["commission_amount_cents"] == 4000
    assert commissions[0]["barber_id"] == str(shop["barber"].id)


@pytest.mark.asyncio
async def test_resolve_reconciliation_issue(client, db_session, shop, admin_headers):
    issue = await LedgerPoster.record_issue(
        db_session, "post_payment_confirmed", uuid.uuid4(), "Ledger posting failed: OperationalError"
    )
    await db_session.commit()

    listed = await client.get("/v1/admin/reconciliation-issues", headers=admin_headers)
    assert [i["id"] for i in listed.json()] == [str(issue.id)]

    resolved = await client.post(f"/v1/admin/reconciliation-issues/{issue.id}/resolve", headers=admin_headers)
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "RESOLVED"
    assert resolved.json()["resolved_at"] is not None

    still_open = await client.get("/v1/admin/reconciliation-issues", headers=admin_headers)
    assert still_open.json() == []

    logs = await client.get(
        "/v1/admin/audit-logs", params={"entity": "reconciliation_issue"}, headers=admin_headers
    )
    assert [log["action"] for log in logs.json()] == ["RECONCILIATION_ISSUE_RESOLVED"]


@pytest.mark.asyncio
async def test_resolve_unknown_issue(client, shop, admin_headers):
    response = await client.post(f"/v1/admin/reconciliation-issues/{uuid.uuid4()}/resolve", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


@pytest.mark.asyncio
async def test_appointment_actions_are_audited(client, shop, client_headers, staff_headers, admin_headers):
    appointment = await book(client, shop, client_headers)
    await client.post(f"/v1/appointments/{appointment['id']}/confirm", headers=staff_headers)

    logs = await client.get(
        "/v1/admin/audit-logs",
        params={"entity": "appointment", "entity_id": appointment["id"]},
        headers=admin_headers,
    )

    actions = {log["action"] for log in logs.json()}
    assert actions == {"APPOINTMENT_CREATED", "APPOINTMENT_CONFIRMED"}
