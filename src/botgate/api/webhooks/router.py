"""Public webhook receiver for chat platforms.

Mounted at the application root (``/webhook/{integration_id}``) because
each platform is configured with a fixed callback URL. The receiver only
authenticates and enqueues; all decoding and AI work happens in the
Celery worker. It answers quickly so platforms do not retry deliveries.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from kombu.exceptions import OperationalError
from sqlalchemy.exc import SQLAlchemyError

from botgate.api.deps import Enqueuer, get_enqueuer, get_integration_service
from botgate.models.integration import Integration, IntegrationStatus, Platform
from botgate.platforms.whatsapp import WhatsAppAdapter
from botgate.services.integration_service import IntegrationService

logger = logging.getLogger(__name__)

router = APIRouter()

TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"
WHATSAPP_SIGNATURE_HEADER = "X-Hub-Signature-256"

ACK = {"ok": True}


def authenticate(integration: Integration, request_secret: str | None) -> bool:
    """Check the Telegram secret-token header against the stored secret.

    Integrations without a stored secret accept every request.
    """
    expected = integration.webhook_secret
    if not expected:
        return True
    if not request_secret:
        return False
    return hmac.compare_digest(request_secret.encode(), expected.encode())


def verify_signature(app_secret: str | None, body: bytes, signature_header: str | None) -> bool:
    """Check a WhatsApp ``X-Hub-Signature-256`` header (``sha256=<hex>``)."""
    if not app_secret:
        return True
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[len("sha256="):].encode(), expected.encode())


async def _load(service: IntegrationService, integration_id: str) -> Integration:
    try:
        UUID(integration_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Integration not found") from exc
    integration = await service.get_integration(integration_id)
    if integration is None:
        raise HTTPException(status_code=404, detail="Integration not found")
    return integration


@router.post("/webhook/{integration_id}")
async def receive_webhook(
    integration_id: str,
    request: Request,
    service: IntegrationService = Depends(get_integration_service),
    enqueue: Enqueuer = Depends(get_enqueuer),
) -> dict:
    """Authenticate a platform callback and enqueue it for processing.

    WhatsApp callbacks are acknowledged with 200 even when processing fails
    internally, since Meta redelivers every non-2xx response.
    """
    try:
        integration = await _load(service, integration_id)
    except SQLAlchemyError:
        if WHATSAPP_SIGNATURE_HEADER not in request.headers:
            raise
        logger.exception("Failed to load integration %s for a WhatsApp webhook", integration_id)
        return ACK
    body = await request.body()

    if integration.platform == Platform.TELEGRAM.value:
        if not authenticate(integration, request.headers.get(TELEGRAM_SECRET_HEADER)):
            logger.warning("Rejected Telegram webhook with bad secret for %s", integration_id)
            raise HTTPException(status_code=403, detail="Invalid secret token")
    elif not verify_signature(
        integration.webhook_secret, body, request.headers.get(WHATSAPP_SIGNATURE_HEADER)
    ):
        # WhatsApp retries non-2xx responses for days, so bad signatures are acked
        logger.warning("Ignoring WhatsApp webhook with bad signature for %s", integration_id)
        return ACK

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Ignoring non-JSON webhook body for %s", integration_id)
        return ACK
    if not isinstance(payload, dict):
        logger.warning("Ignoring webhook body that is not an object for %s", integration_id)
        return ACK

    if integration.status != IntegrationStatus.CONNECTED.value:
        logger.info(
            "Ignoring webhook for integration %s in status %s",
            integration_id,
            integration.status,
        )
        return ACK

    try:
        task_id = await run_in_threadpool(
            enqueue, integration.id, integration.platform, payload
        )
    except (OperationalError, OSError):
        logger.exception("Failed to enqueue webhook job for integration %s", integration_id)
        return ACK
    except Exception:
        if integration.platform != Platform.WHATSAPP.value:
            raise
        logger.exception("Unexpected error enqueueing WhatsApp webhook for %s", integration_id)
        return ACK

    logger.debug("Enqueued job %s for integration %s", task_id, integration_id)
    return ACK


@router.get("/webhook/{integration_id}", response_class=PlainTextResponse)
async def verify_webhook(
    integration_id: str,
    request: Request,
    service: IntegrationService = Depends(get_integration_service),
) -> PlainTextResponse:
    """WhatsApp subscription handshake: echo ``hub.challenge`` when the token matches."""
    integration = await _load(service, integration_id)
    if integration.platform != Platform.WHATSAPP.value:
        raise HTTPException(status_code=404, detail="Integration not found")

    params = request.query_params
    mode = params.get("hub.mode") or params.get("mode")
    token = params.get("hub.verify_token") or params.get("verify_token")
    challenge = params.get("hub.challenge") or params.get("challenge")

    adapter = service.adapter_factory(integration)
    answer = (
        adapter.verify_handshake(mode, token, challenge)
        if isinstance(adapter, WhatsAppAdapter)
        else None
    )
    if answer is None:
        logger.warning("WhatsApp verification failed for integration %s", integration_id)
        raise HTTPException(status_code=403, detail="Verification failed")

    logger.info("WhatsApp webhook verified for integration %s", integration_id)
    return PlainTextResponse(answer)
