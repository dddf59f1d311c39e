"""
Audit Log Database Model.

Tracks appointment transitions and payment events for back-office review.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from barbershop.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - APPOINTMENT_CREATED / APPOINTMENT_RESCHEDULED
    - APPOINTMENT_CONFIRMED / STARTED / COMPLETED / CANCELLED / NO_SHOW
    - PAYMENT_INTENT_CREATED / PAYMENT_CONFIRMED / PAYMENT_REFUNDED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions such as webhooks)
    actor_id = Column(String(100), index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed, on what
    action = Column(String(100), nullable=False, index=True)
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(100), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity}', entity_id={self.entity_id})>"
