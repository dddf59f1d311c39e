"""
Centralized Test Configuration.
"""

import json
import uuid
from datetime import time, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from barbershop.app.main import app
from barbershop.app.db.session import get_db, Base
from barbershop.app.core.jwt import create_access_token
from barbershop.app.domain.billing.gateway import (
    BillingGateway, BillingResult, SubscriptionResult, get_billing_gateway
)
from barbershop.app.domain.billing.signature import SIGNATURE_HEADER, compute_signature
from barbershop.app.domain.billing.webhook_ingestion import WebhookIngestionService
from barbershop.app.api.v1.endpoints.webhooks import get_webhook_service
from barbershop.app.models.barber import Barber
from barbershop.app.models.business_settings import BusinessSettings
from barbershop.app.models.client import Client
from barbershop.app.models.service import Service
from barbershop.app.models.enums import UserRole

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = "test-webhook-secret"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class FakeBillingGateway(BillingGateway):
    """Records calls instead of talking to the provider."""

    def __init__(self):
        self.calls = []
        self.fail_with = None

    async def create_billing(self, request):
        self.calls.append(("create_billing", request))
        if self.fail_with:
            raise self.fail_with
        billing_id = f"bill_{uuid.uuid4().hex[:12]}"
        return BillingResult(
            id=billing_id,
            status="PENDING",
            url=f"https://pay.example.test/{billing_id}",
            pix_code="00020101021226",
            qr_code="data:image/png;base64,AAAA",
        )

    async def get_billing(self, billing_id):
        self.calls.append(("get_billing", billing_id))
        return BillingResult(id=billing_id, status="PENDING")

    async def cancel_billing(self, billing_id):
        self.calls.append(("cancel_billing", billing_id))

    async def create_subscription(self, request):
        self.calls.append(("create_subscription", request))
        return SubscriptionResult(id=f"subs_{uuid.uuid4().hex[:12]}", status="ACTIVE")

    async def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel_subscription", subscription_id))

    async def pause_subscription(self, subscription_id):
        self.calls.append(("pause_subscription", subscription_id))

    async def resume_subscription(self, subscription_id):
        self.calls.append(("resume_subscription", subscription_id))


@pytest.fixture
def fake_gateway():
    return FakeBillingGateway()


@pytest.fixture(autouse=True)
def apply_overrides(fake_gateway):
    """Point the app at the test database, the fake gateway and a known webhook secret."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_billing_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_webhook_service] = lambda: WebhookIngestionService(
        provider="abacatepay", secret=WEBHOOK_SECRET
    )
    yield
    app.dependency_overrides = {}

@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


def auth_headers(role: UserRole = UserRole.STAFF, subject: str = None) -> dict:
    token = create_access_token(
        data={"sub": subject or str(uuid.uuid4()), "username": f"test-{role.value}", "role": role.value},
        expires_delta=timedelta(minutes=5),
    )
    return {"Authorization": f"Bearer {token}"}


def signed_webhook(payload, secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict]:
    """Body and headers of a delivery signed like the provider does. Raw bytes are sent as is."""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: compute_signature(body, secret),
    }
    return body, headers


@pytest.fixture
def sign():
    return signed_webhook


@pytest.fixture
def client_headers():
    return auth_headers(UserRole.CLIENT)


@pytest.fixture
def staff_headers():
    return auth_headers(UserRole.STAFF)


@pytest.fixture
def admin_headers():
    return auth_headers(UserRole.ADMIN)


@pytest.fixture
async def shop(db_session):
    """
    A shop open 09:00-20:00 Monday to Saturday, one barber on 40%
    commission, a 30-minute haircut at R$ 100,00 and one client.
    """
    settings_row = BusinessSettings(
        barbershop_name="Barbearia Teste",
        opening_time=time(9, 0),
        closing_time=time(20, 0),
        working_days=[1, 2, 3, 4, 5, 6],
        slot_duration_minutes=30,
    )
    barber = Barber(name="Carlos", commission_percentage=Decimal("40.00"), is_active=True)
    service = Service(name="Corte", price_cents=10000, duration_minutes=30, is_active=True)
    customer = Client(name="Ana Souza", email="ana@example.com", phone="+5511999990000")

    db_session.add_all([settings_row, barber, service, customer])
    await db_session.commit()

    return {"settings": settings_row, "barber": barber, "service": service, "client": customer}
