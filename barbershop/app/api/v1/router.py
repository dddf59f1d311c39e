"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from barbershop.app.api.v1.endpoints import (
    availability, appointments, payments, webhooks, ledger, admin_ops
)

router = APIRouter()

# Scheduling
router.include_router(availability.router)
router.include_router(appointments.router)

# Billing
router.include_router(payments.router)
router.include_router(webhooks.router)
router.include_router(ledger.router)

# Back-office
router.include_router(admin_ops.router)
