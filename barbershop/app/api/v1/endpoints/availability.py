"""
Availability API Endpoints.

Public: lists the start times a barber can still offer on a day.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.exceptions import ResourceNotFoundError, ValidationFailedError
from barbershop.app.db.session import get_db
from barbershop.app.domain.scheduling.availability import get_available_slots
from barbershop.app.models.service import Service
from barbershop.app.schemas.availability import SlotResponse

router = APIRouter(tags=["Availability"])


@router.get("/availability", response_model=List[SlotResponse])
async def list_available_slots(
    barber_id: UUID = Query(..., description="Barber ID"),
    day: date = Query(..., alias="date", description="Local calendar day (YYYY-MM-DD)"),
    duration_minutes: Optional[int] = Query(None, gt=0, le=24 * 60, description="Service length"),
    service_id: Optional[UUID] = Query(None, description="Take the length from this service"),
    db: AsyncSession = Depends(get_db)
):
    """
    Available slots for a barber on a day.

    The service length comes from duration_minutes, else from service_id.
    One of the two is required.
    """
    if duration_minutes is None and service_id is None:
        raise ValidationFailedError(
            "Either duration_minutes or service_id is required",
            details={"fields": ["duration_minutes", "service_id"]},
        )

    if duration_minutes is None:
        service = await db.get(Service, service_id)
        if not service or not service.is_active:
            raise ResourceNotFoundError("Service", service_id)
        duration_minutes = service.duration_minutes

    slots = await get_available_slots(db, barber_id, day, duration_minutes)
    return [SlotResponse(start=slot.start, end=slot.end) for slot in slots]
