"""
Xendit Webhook Router

Handles Xendit payment callbacks:
- callback token check (fail-closed) and optional HMAC-SHA256 body signature
- event kind inference from loosely shaped payloads
- idempotent subscription state transition, creating user/subscription when missing
- write-once JSON archive of every delivery for debugging
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from core.factory import ServiceFactory
from core.responses import WebhookException, success_response
from services.event_classifier import classify_event
from services.reconciliation_service import ReconciliationService
from services.webhook_archive import WebhookArchive
from services.webhook_auth import WebhookAuthenticator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks", "xendit"])


def get_webhook_authenticator() -> WebhookAuthenticator:
    return ServiceFactory.get_webhook_authenticator()


def get_webhook_archive() -> WebhookArchive:
    return ServiceFactory.get_webhook_archive()


def get_reconciliation_service() -> ReconciliationService:
    return ServiceFactory.get_reconciliation_service()


@router.get("/webhook")
async def xendit_webhook_get():
    return success_response(data={"ok": True}, message="xendit webhook alive")


@router.post("/webhook")
async def xendit_webhook(
    request: Request,
    authenticator: WebhookAuthenticator = Depends(get_webhook_authenticator),
    archive: WebhookArchive = Depends(get_webhook_archive),
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
):
    raw = await request.body()
    logger.info("[XENDIT] webhook received: len=%s", len(raw))

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        logger.warning("[XENDIT] webhook body is not valid JSON")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

    try:
        event = classify_event(payload)
        logger.info(
            "[XENDIT] webhook classified: kind=%s raw_event=%s strategy=%s",
            event.kind.value,
            event.raw_event,
            event.strategy,
        )
        archive.archive(payload, request.headers, event.kind.value)

        authenticator.authenticate(request.headers, raw)

        result = await reconciliation_service.reconcile(event, payload)
    except WebhookException as e:
        logger.warning("[XENDIT] webhook rejected: status=%s error=%s", e.status_code, e.message)
        return JSONResponse(status_code=e.status_code, content=e.to_body())
    except Exception as e:
        logger.error("[XENDIT] webhook processing failed: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    logger.info(
        "[XENDIT] webhook processed: kind=%s invoice_id=%s result=%s subscription_id=%s",
        result.event_kind.value,
        result.invoice_id,
        result.status,
        result.subscription_id,
    )
    return JSONResponse(status_code=result.http_status, content=result.to_response())
