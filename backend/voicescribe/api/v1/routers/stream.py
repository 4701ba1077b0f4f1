import asyncio
import json
import logging
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from voicescribe.core.pubsub import TRANSCRIPTIONS, Channel, channel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["stream"])

KEEPALIVE_SECONDS = 15.0


def _event(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def event_stream(request: Request, ch: Channel = channel, keepalive: float = KEEPALIVE_SECONDS):
    """
    Server-Sent Events generator for one dashboard connection.

    Message flow:
    1. {"type": "connected"} right away
    2. {"type": "new_transcription", "data": record} for every saved record
    3. ": keepalive" comments while idle

    The subscription is removed when the client disconnects.
    """
    sub = ch.subscribe(TRANSCRIPTIONS)
    logger.info("[stream] connected | listeners=%d", ch.subscriber_count())
    try:
        yield _event({"type": "connected"})
        while True:
            try:
                record = await asyncio.wait_for(sub.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield ": keepalive\n\n"
                continue
            yield _event({"type": "new_transcription", "data": record})
    finally:
        ch.unsubscribe(sub)
        logger.info("[stream] disconnected | listeners=%d", ch.subscriber_count())


@router.get("/stream")
async def stream(request: Request):
    ch = request.app.state.services.store.events if getattr(request.app.state, "services", None) else channel
    return StreamingResponse(
        event_stream(request, ch),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
