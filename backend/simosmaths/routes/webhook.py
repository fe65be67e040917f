from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status

from .. import metrics, schemas
from ..dependencies import Gateway
from ..services import webhook_reconciliation
from ..services.payment_gateway import PaymentGatewayError

router = APIRouter(prefix="/api", tags=["webhook"])
logger = logging.getLogger(__name__)


@router.post("/webhook", response_model=schemas.WebhookAck, status_code=status.HTTP_200_OK)
async def payment_webhook(request: Request, gateway: Gateway) -> schemas.WebhookAck:
    # Raw body: the signature covers the exact bytes sent by the gateway.
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        await webhook_reconciliation.handle_webhook(gateway, payload, signature)
    except PaymentGatewayError as exc:
        logger.warning("Rejected payment webhook: %s", exc.detail)
        metrics.webhook_events_total.labels(event_type="unverified", outcome="rejected").inc()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.WebhookAck(received=True)
