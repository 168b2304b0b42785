from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse

from app.application.dto.webhook_event import WebhookEventDTO
from app.application.use_cases.handle_incoming_message import HandleIncomingMessageUseCase
from app.infrastructure.messenger.webhook_verify import verify_post_signature, verify_subscription
from app.wiring.dependencies import get_handle_incoming_message_use_case
from app.core.config import settings


router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/webhooks/messenger")
def verify_webhook(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
):
    challenge = verify_subscription(hub_mode, hub_verify_token, hub_challenge, settings.META_VERIFY_TOKEN)
    if challenge is None:
        raise HTTPException(status_code=403, detail="Verification failed")
    return PlainTextResponse(challenge)


@router.post("/webhooks/messenger")
async def messenger_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    use_case: HandleIncomingMessageUseCase = Depends(get_handle_incoming_message_use_case),
) -> Response:
    body = await request.body()
    signature = request.headers.get("X-Hub-Signature-256")
    if not verify_post_signature(body, signature, settings.META_APP_SECRET, settings.ENV):
        logger.warning("Webhook signature rejected")
        return Response(status_code=403)

    try:
        payload = json.loads(body.decode("utf-8")) if body else {}
    except (UnicodeDecodeError, ValueError):
        logger.exception("Failed to parse webhook body")
        return Response(status_code=400)

    try:
        event = WebhookEventDTO.model_validate(payload)
        if event.object not in (None, "page"):
            logger.info("Ignoring webhook for non-page object", extra={"reason": event.object})
            return Response(status_code=200)

        messages = event.extract_messages()
        logger.info("Webhook received", extra={"message_count": len(messages)})

        for message in messages:
            background_tasks.add_task(use_case.handle, message)

        return Response(status_code=200)
    except Exception as e:
        logger.exception("Error processing webhook event", extra={"reason": str(e)})
        return Response(status_code=500)
