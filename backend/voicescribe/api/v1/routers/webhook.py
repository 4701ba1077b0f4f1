import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError
from voicescribe.api.v1.deps import get_queue
from voicescribe.config import settings
from voicescribe.core.security import verify_signature, verify_subscription
from voicescribe.schemas.webhook import WebhookPayload
from voicescribe.services.message_queue import MessageQueue, QueueItem

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


async def _handoff(queue: MessageQueue, items: list[QueueItem]):
    # Runs after the 200 has been sent, on the event loop
    for item in items:
        queue.enqueue(item)


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    mode: str | None = Query(default=None, alias="hub.mode"),
    token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
):
    """
    Meta webhook verification.

    Meta calls this once when the webhook URL is registered and expects the
    challenge echoed back as plain text.

    Raises:
        HTTPException (403): If the mode or verify token does not match (VERIFICATION_FAILED)
    """
    if verify_subscription(mode, token, settings.whatsapp_verify_token):
        logger.info("[webhook] verified successfully")
        return PlainTextResponse(challenge or "")
    logger.warning("[webhook] verification failed")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="VERIFICATION_FAILED")


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    queue: MessageQueue = Depends(get_queue),
):
    """
    Receive WhatsApp messages.

    The signature is checked against the raw body, then the request is
    acknowledged with 200 right away (Meta retries on slow responses) and
    every contained message is queued for sequential processing.

    Raises:
        HTTPException (403): If the X-Hub-Signature-256 header is missing or wrong (INVALID_SIGNATURE)
        HTTPException (400): If the body is not JSON at all (INVALID_PAYLOAD)

    JSON that does not look like a webhook payload is acknowledged and ignored.
    """
    body = await request.body()
    if not verify_signature(body, request.headers.get("x-hub-signature-256"), settings.whatsapp_app_secret):
        logger.error("[webhook] invalid signature, possible spoofing attempt")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="INVALID_SIGNATURE")

    try:
        payload = WebhookPayload.model_validate_json(body)
    except ValidationError as e:
        if any(err["type"] == "json_invalid" for err in e.errors()):
            logger.warning("[webhook] body is not JSON | body=%r", body[:200])
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="INVALID_PAYLOAD")
        # Valid JSON in an unknown shape: acknowledged, nothing queued
        logger.warning(
            "[webhook] unrecognized payload shape, ignoring | errors=%d | body=%r", e.error_count(), body[:200]
        )
        return Response(status_code=status.HTTP_200_OK)

    items = [
        QueueItem(message=message, sender=sender, sender_name=name)
        for message, sender, name in payload.iter_messages()
    ]
    if items:
        background_tasks.add_task(_handoff, queue, items)
    return Response(status_code=status.HTTP_200_OK)
