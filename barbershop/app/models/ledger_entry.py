"""
Ledger Entry database model.

Immutable cash-position records.
"""

import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Uuid
from sqlalchemy.sql import func
from barbershop.app.db.session import Base
from barbershop.app.models.enums import enum_values
from barbershop.app.models.billing_enums import LedgerEntryType, LedgerCategory, LedgerReferenceKind


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Append-only: NO updates or deletions allowed.
    (reference_kind, reference_id) names the record that explains the entry.
    The authoritative balance is sum(credits) - sum(debits);
    balance_after_cents is an informational snapshot for reports.
    """
    __tablename__ = "ledger_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Entry details
    entry_type = Column(
        Enum(LedgerEntryType, name="ledger_kind", values_callable=enum_values),
        nullable=False,
    )
    category = Column(
        Enum(LedgerCategory, name="ledger_category", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    amount_cents = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)

    # Back-reference
    reference_kind = Column(
        Enum(LedgerReferenceKind, name="ledger_reference_kind", values_callable=enum_values),
        nullable=True,
    )
    reference_id = Column(Uuid, nullable=True, index=True)
    payment_intent_id = Column(Uuid, ForeignKey('payment_intents.id'), nullable=True, index=True)
    barber_id = Column(Uuid, ForeignKey('barbers.id'), nullable=True, index=True)

    balance_after_cents = Column(Integer, nullable=True)

    # Timestamps (Immutable - no updated_at)
    occurred_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def signed_amount_cents(self) -> int:
        if self.entry_type == LedgerEntryType.CREDIT:
            return self.amount_cents
        return -self.amount_cents

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, type='{self.entry_type.value}', category='{self.category.value}', amount_cents={self.amount_cents})>"
