"""
Webhook API Endpoints.

Receives billing provider callbacks. Responses use the provider-facing
{"message"} / {"error"} bodies rather than the API error format: the
provider retries on 5xx and stops on 2xx.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from barbershop.app.core.config import settings
from barbershop.app.core.exceptions import InvalidSignatureError, MalformedPayloadError
from barbershop.app.db.session import get_db
from barbershop.app.domain.billing.signature import SIGNATURE_HEADER
from barbershop.app.domain.billing.webhook_ingestion import WebhookIngestionService

logger = logging.getLogger("barbershop.webhooks")

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

# Not worth keeping in the audit copy of the delivery
_DROPPED_HEADERS = {"authorization", "cookie"}


def get_webhook_service() -> WebhookIngestionService:
    return WebhookIngestionService(
        provider=settings.payment_provider,
        secret=settings.abacatepay_webhook_secret,
    )


@router.post("/abacatepay")
async def abacatepay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: WebhookIngestionService = Depends(get_webhook_service),
):
    """
    AbacatePay webhook.

    200 for processed, duplicate and business-failure deliveries;
    401 bad signature; 400 malformed body; 500 unexpected failure (retried).
    """
    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items() if k.lower() not in _DROPPED_HEADERS}

    try:
        ack = await service.ingest(db, raw_body, request.headers.get(SIGNATURE_HEADER), headers=headers)
    except (InvalidSignatureError, MalformedPayloadError) as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
    except Exception as exc:
        logger.error("Webhook handler error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    return JSONResponse(status_code=ack.status_code, content=ack.body)


@router.api_route("/abacatepay", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def abacatepay_method_not_allowed():
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed"},
        headers={"Allow": "POST"},
    )
