"""
Reconciliation Issue Model.

Records payment confirmations whose ledger or commission posting failed,
so an operator can repair them.
"""

import uuid

from sqlalchemy import Column, String, Text, DateTime, JSON, Enum, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.billing_enums import IssueStatus


class ReconciliationIssue(Base):
    """
    Reconciliation issue table.
    One row per failed posting attempt.
    """
    __tablename__ = "reconciliation_issues"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    operation = Column(String(100), nullable=False, index=True)
    reference_id = Column(String(100), nullable=True, index=True)
    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(Enum(IssueStatus), default=IssueStatus.OPEN, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ReconciliationIssue(id={self.id}, operation='{self.operation}', status='{self.status}')>"
