"""
Webhook Ingestion & Idempotency Ledger.

Every provider delivery is recorded as a WebhookEvent keyed by
(provider, provider_event_id). The unique constraint on that pair is what
makes processing exactly-once in effect: whichever request inserts the row
owns the event, later deliveries only read its status.

Unlike the domain services, ingestion owns its transactions. The claim is
committed before dispatch so that other workers see PROCESSING and so a
failed dispatch can be rolled back without losing the event row.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.clock import utcnow
from barbershop.app.core.exceptions import InvalidSignatureError, MalformedPayloadError
from barbershop.app.domain.billing.reconciliation import ReconciliationEngine, ReconciliationOutcome
from barbershop.app.domain.billing.signature import verify_signature
from barbershop.app.models.webhook_event import WebhookEvent
from barbershop.app.models.billing_enums import WebhookEventType, WebhookStatus
from barbershop.app.schemas.webhook import WebhookEnvelope

logger = logging.getLogger("barbershop.webhooks")

ALREADY_PROCESSED = {"message": "Already processed"}
IN_PROGRESS = {"message": "Processing in progress"}
OK = {"message": "OK"}


@dataclass
class WebhookAck:
    status_code: int = 200
    body: Dict[str, Any] = field(default_factory=lambda: dict(OK))


def parse_envelope(raw_body: bytes) -> WebhookEnvelope:
    """
    Parse a delivery body.

    Raises:
        MalformedPayloadError: Not JSON, or missing the event type or billing id
    """
    try:
        return WebhookEnvelope.model_validate_json(raw_body)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        raise MalformedPayloadError(reason=first.get("msg", "invalid"))


class WebhookIngestionService:

    def __init__(self, provider: str, secret: Optional[str] = None):
        self.provider = provider
        self.secret = secret

    async def ingest(
        self,
        db: AsyncSession,
        raw_body: bytes,
        signature: Optional[str],
        headers: Optional[Dict[str, str]] = None,
    ) -> WebhookAck:
        """
        Verify, deduplicate and process one delivery.

        Flow:
        1. Signature check (only when a secret is configured)
        2. Envelope parse
        3. Insert-or-get the WebhookEvent; bail out if someone else owns it
        4. Dispatch to the reconciliation engine
        5. Record PROCESSED or FAILED

        Returns:
            WebhookAck to send back to the provider

        Raises:
            InvalidSignatureError: Signature missing or wrong; nothing stored
            MalformedPayloadError: Body unparseable; nothing stored
            Exception: Unexpected dispatch failure; event left FAILED (retryable)
        """
        signature_valid = None
        if self.secret:
            if not verify_signature(raw_body, signature, self.secret):
                logger.warning("Rejected %s webhook with invalid signature", self.provider)
                raise InvalidSignatureError()
            signature_valid = True

        envelope = parse_envelope(raw_body)
        event_type = WebhookEventType.parse(envelope.event)

        event_id, ack = await self._claim(db, envelope, signature, signature_valid, headers)
        if ack is not None:
            return ack

        try:
            outcome = await ReconciliationEngine.dispatch(db, event_type, envelope.data)
        except Exception as exc:
            await db.rollback()
            logger.exception("Webhook event %s (%s) failed unexpectedly", envelope.provider_event_id, envelope.event)
            await self._finish(db, event_id, ReconciliationOutcome(error=f"{exc.__class__.__name__}: {exc}"))
            await db.commit()
            raise

        await self._finish(db, event_id, outcome)
        await db.commit()

        if outcome.error:
            logger.warning(
                "Webhook event %s (%s) processed with errors: %s",
                envelope.provider_event_id, envelope.event, outcome.error,
            )
            return WebhookAck(body={"message": "Processed with errors", "error": outcome.error})

        logger.info("Webhook event %s (%s) processed: %s", envelope.provider_event_id, envelope.event, outcome.action)
        return WebhookAck()

    async def _claim(
        self,
        db: AsyncSession,
        envelope: WebhookEnvelope,
        signature: Optional[str],
        signature_valid: Optional[bool],
        headers: Optional[Dict[str, str]],
    ) -> tuple[Optional[UUID], Optional[WebhookAck]]:
        """Take ownership of the event, or return the ack for a delivery someone else owns."""
        provider_event_id = envelope.provider_event_id
        result = await db.execute(
            select(WebhookEvent).where(
                WebhookEvent.provider == self.provider,
                WebhookEvent.provider_event_id == provider_event_id,
            )
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            if existing.status in (WebhookStatus.PROCESSED, WebhookStatus.IGNORED):
                return None, WebhookAck(body=dict(ALREADY_PROCESSED))
            if existing.status == WebhookStatus.PROCESSING:
                return None, WebhookAck(body=dict(IN_PROGRESS))

            # FAILED or RECEIVED: retry, unless a concurrent delivery got there first
            reclaimed = await db.execute(
                update(WebhookEvent)
                .where(
                    WebhookEvent.id == existing.id,
                    WebhookEvent.status.in_([WebhookStatus.FAILED, WebhookStatus.RECEIVED]),
                )
                .values(
                    status=WebhookStatus.PROCESSING,
                    retry_count=WebhookEvent.retry_count + 1,
                    error_message=None,
                    signature=signature,
                    signature_valid=signature_valid,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if reclaimed.rowcount == 0:
                return None, WebhookAck(body=dict(IN_PROGRESS))
            logger.info("Retrying webhook event %s", provider_event_id)
            return existing.id, None

        event = WebhookEvent(
            provider=self.provider,
            provider_event_id=provider_event_id,
            event_type=envelope.event,
            payload=envelope.model_dump(mode="json", by_alias=True),
            headers=headers,
            signature=signature,
            signature_valid=signature_valid,
            status=WebhookStatus.PROCESSING,
        )
        db.add(event)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info("Webhook event %s claimed by a concurrent delivery", provider_event_id)
            return None, WebhookAck(body=dict(IN_PROGRESS))

        return event.id, None

    async def _finish(self, db: AsyncSession, event_id: UUID, outcome: ReconciliationOutcome) -> None:
        await db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == event_id)
            .values(
                status=WebhookStatus.FAILED if outcome.error else WebhookStatus.PROCESSED,
                error_message=outcome.error,
                processed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
