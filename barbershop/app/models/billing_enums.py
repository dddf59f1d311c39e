"""
Billing enumerations.
"""

import enum


class PaymentType(str, enum.Enum):
    """Payment intent type."""
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"


class PaymentStatus(str, enum.Enum):
    """Payment intent status enumeration."""
    PENDING = "pending"  # Created locally, no billing yet
    PROCESSING = "processing"  # Billing created at the provider
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enumeration."""
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    EXPIRED = "expired"


class LedgerEntryType(str, enum.Enum):
    """Ledger entry type enumeration."""
    DEBIT = "debit"  # Money leaving the business
    CREDIT = "credit"  # Money entering the business


class LedgerCategory(str, enum.Enum):
    """Ledger entry category."""
    SERVICE_PAYMENT = "service_payment"
    SUBSCRIPTION_PAYMENT = "subscription_payment"
    REFUND = "refund"
    COMMISSION = "commission"
    EXPENSE = "expense"
    ADJUSTMENT = "adjustment"
    WITHDRAWAL = "withdrawal"


class LedgerReferenceKind(str, enum.Enum):
    """Kind of record that explains a ledger entry."""
    PAYMENT_INTENT = "payment_intent"
    COMMISSION = "commission"


class CommissionStatus(str, enum.Enum):
    """Commission status enumeration."""
    PENDING = "pending"
    APPROVED = "approved"  # Earned, waiting for payout
    PAID = "paid"  # Paid out to the barber
    CANCELLED = "cancelled"


class WebhookStatus(str, enum.Enum):
    """Webhook event processing status."""
    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    IGNORED = "ignored"


class IssueStatus(str, enum.Enum):
    """Reconciliation issue status."""
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class WebhookEventType(str, enum.Enum):
    """Provider event types the reconciliation engine understands."""
    BILLING_PAID = "billing.paid"
    BILLING_EXPIRED = "billing.expired"
    BILLING_CANCELLED = "billing.cancelled"
    BILLING_REFUNDED = "billing.refunded"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    SUBSCRIPTION_PAYMENT_FAILED = "subscription.payment_failed"
    UNKNOWN = "unknown"  # Accepted and acknowledged without action

    @classmethod
    def parse(cls, raw: str) -> "WebhookEventType":
        try:
            member = cls((raw or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return member
