import dataclasses
import logging
import time
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from voicescribe.api.v1.deps import get_services
from voicescribe.core.bootstrap import Services
from voicescribe.core.errors import SizeExceededError, TranscriptionError
from voicescribe.schemas.transcription import UploadOut
from voicescribe.services.asr_base import MAX_AUDIO_BYTES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["upload"])

DEFAULT_UPLOAD_NAME = "Kézi feltöltés"  # "Manual upload"


@router.post("/transcribe", response_model=UploadOut)
async def transcribe_upload(
    audio: UploadFile | None = File(default=None),
    senderName: str | None = Form(default=None),
    services: Services = Depends(get_services),
):
    """
    Transcribe an uploaded audio file and save it with source "manual".

    Bypasses the WhatsApp queue: the request waits for the transcription.

    Raises:
        HTTPException (400): If no file was sent (AUDIO_REQUIRED)
        HTTPException (413): If the file is larger than 25MB (AUDIO_TOO_LARGE)
        HTTPException (502): If the transcription API failed (TRANSCRIPTION_FAILED)
    """
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="AUDIO_REQUIRED")

    data = await audio.read(MAX_AUDIO_BYTES + 1)
    mime_type = audio.content_type or "audio/ogg"
    logger.info("[upload] manual upload | file=%s | mime=%s | size_kb=%d", audio.filename, mime_type, len(data) // 1024)

    try:
        result = await services.asr.transcribe(data, mime_type)
    except SizeExceededError:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="AUDIO_TOO_LARGE")
    except TranscriptionError as e:
        logger.error("[upload] transcription failed | error=%s", e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="TRANSCRIPTION_FAILED")

    record_id = services.store.save_transcription(
        sender="manual",
        sender_name=senderName or DEFAULT_UPLOAD_NAME,
        timestamp=int(time.time()),
        transcription=result.text,
        language=result.language,
        duration=result.duration,
        source="manual",
    )
    logger.info("[upload] manual transcription saved | id=%s", record_id)

    return UploadOut(
        id=record_id,
        text=result.text,
        language=result.language,
        duration=result.duration,
        segments=[dataclasses.asdict(s) for s in result.segments],
    )
