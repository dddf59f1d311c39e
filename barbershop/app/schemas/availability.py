"""
Availability schemas.
"""

from pydantic import BaseModel
from datetime import datetime


class SlotResponse(BaseModel):
    """A bookable interval [start, end) in UTC."""
    start: datetime
    end: datetime

    class Config:
        from_attributes = True
