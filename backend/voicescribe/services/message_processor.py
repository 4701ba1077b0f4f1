"""
Message processor: what happens to one queued WhatsApp message.

Audio messages go through download -> size check -> transcription -> save ->
optional auto-reply -> optional forwarding. Text messages only answer the
help keywords. Everything else is ignored.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .asr_base import MAX_AUDIO_BYTES, ASRService, TranscriptionResult
from .message_queue import QueueItem
from .whatsapp import WhatsAppClient
from ..core.db import TranscriptionStore
from ..core.errors import DownloadError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/ogg"
DOWNLOAD_RETRY_DELAY = 2.0
HELP_KEYWORDS = frozenset({"help", "segítség"})

# User-facing texts (Hungarian audience)
DOWNLOAD_FAILED_TEXT = "❌ Nem sikerült letölteni a hangüzenetet, kérlek próbáld újra."
TOO_LARGE_TEXT = "⚠️ A hangüzenet túl nagy (max 25MB). Kérlek küldj rövidebb üzenetet."
HELP_TEXT = (
    "🎙️ *VoiceScribe*\n\n"
    "Küldj egy hangüzenetet és automatikusan átírom szöveggé!\n\n"
    "Támogatott nyelvek: 🇭🇺 Magyar, 🇷🇴 Román, 🇬🇧 Angol és 50+ más nyelv.\n\n"
    "_Powered by OpenAI Whisper_"
)


def format_reply(result: TranscriptionResult) -> str:
    return (
        f"📝 *Átírás:*\n\n{result.text}\n\n"
        f"_Nyelv: {result.language} | {round(result.duration or 0)}s_"
    )


def format_forward(sender_name: str, sender: str, duration_str: str, text: str) -> str:
    return (
        "📨 *Új hangüzenet átírás*\n\n"
        f"👤 *Feladó:* {sender_name} ({sender})\n"
        f"⏱️ *Hossz:* {duration_str}\n\n"
        f"📝 *Szöveg:*\n{text}"
    )


class MessageProcessor:
    """
    Queue handler. One instance is shared by the queue for the whole process;
    it keeps no per-message state.
    """

    def __init__(
        self,
        store: TranscriptionStore,
        whatsapp: WhatsAppClient,
        asr: ASRService,
        forward_numbers: Callable[[], List[str]],
        template_name: str = "voice_transcription_forward",
        template_language: str = "en",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.whatsapp = whatsapp
        self.asr = asr
        self.forward_numbers = forward_numbers
        self.template_name = template_name
        self.template_language = template_language
        self._sleep = sleep

    async def __call__(self, item: QueueItem) -> None:
        message_type = item.message.get("type")
        if message_type == "audio":
            await self.handle_audio(item)
        elif message_type == "text":
            await self.handle_text(item)
        else:
            logger.debug("[processor] ignoring message | type=%s | sender=%s", message_type, item.sender)

    async def handle_text(self, item: QueueItem) -> None:
        body = ((item.message.get("text") or {}).get("body") or "").lower().strip()
        if body in HELP_KEYWORDS:
            await self.whatsapp.send_text(item.sender, HELP_TEXT)

    async def _notify(self, to: str, text: str) -> None:
        # Failure notices are best effort: a failed send is logged and dropped
        try:
            await self.whatsapp.send_text(to, text)
        except Exception as e:
            logger.warning("[processor] could not deliver notice | to=%s | error=%s", to, e)

    async def _download(self, media_id: str) -> Optional[bytes]:
        """Download with one retry after a fixed delay. None when both attempts fail."""
        try:
            return await self.whatsapp.download_media(media_id)
        except DownloadError as e:
            logger.warning("[processor] first download attempt failed, retrying | media_id=%s | error=%s", media_id, e)

        await self._sleep(DOWNLOAD_RETRY_DELAY)
        try:
            return await self.whatsapp.download_media(media_id)
        except DownloadError as e:
            logger.error("[processor] download failed after retry | media_id=%s | error=%s", media_id, e)
            return None

    async def handle_audio(self, item: QueueItem) -> None:
        audio_meta = item.message.get("audio") or {}
        media_id = audio_meta.get("id")
        mime_type = audio_meta.get("mime_type") or DEFAULT_MIME_TYPE

        logger.info("[processor] voice message | sender_name=%s | sender=%s", item.sender_name, item.sender)

        # Step 1: download
        audio = await self._download(media_id)
        if audio is None:
            await self._notify(item.sender, DOWNLOAD_FAILED_TEXT)
            return

        # Step 2: size guard
        if len(audio) > MAX_AUDIO_BYTES:
            logger.warning("[processor] audio too large | size_mb=%d", round(len(audio) / 1024 / 1024))
            await self._notify(item.sender, TOO_LARGE_TEXT)
            return

        # Step 3: transcribe (the ASR service retries on its own)
        default_language = self.store.get_setting("default_language")
        result = await self.asr.transcribe(
            audio,
            mime_type,
            language=default_language if default_language and default_language != "auto" else None,
        )
        logger.info("[processor] transcribed | language=%s | text=%r", result.language, result.text[:80])

        # Step 4: save
        record_id = self.store.save_transcription(
            sender=item.sender,
            sender_name=item.sender_name,
            timestamp=item.enqueued_at_ms // 1000,
            transcription=result.text,
            language=result.language,
            duration=result.duration or audio_meta.get("duration") or None,
            source="whatsapp",
        )
        logger.info("[processor] saved | id=%s", record_id)

        # Step 5: auto-reply; send failures propagate to the queue
        if self.store.get_setting("auto_reply") == "true":
            await self.whatsapp.send_text(item.sender, format_reply(result))
            logger.info("[processor] reply sent | to=%s", item.sender)

        # Step 6: forward
        await self.forward(item, result)

    async def forward(self, item: QueueItem, result: TranscriptionResult) -> None:
        """
        Send the transcription to every configured number except the sender.
        Template first (works outside the session window), plain text as fallback.
        A failed destination is logged and skipped.
        """
        numbers = self.forward_numbers()
        if not numbers:
            return

        duration_str = f"{round(result.duration or 0)}s | {result.language}"
        for number in numbers:
            if number == item.sender:
                continue
            try:
                await self.whatsapp.send_template(
                    number,
                    self.template_name,
                    [f"{item.sender_name} ({item.sender})", duration_str, result.text],
                    language=self.template_language,
                )
                logger.info("[processor] forwarded (template) | to=%s", number)
                continue
            except Exception as e:
                logger.warning("[processor] template failed, trying plain text | to=%s | error=%s", number, e)

            try:
                await self.whatsapp.send_text(
                    number, format_forward(item.sender_name, item.sender, duration_str, result.text)
                )
                logger.info("[processor] forwarded (plain text) | to=%s", number)
            except Exception as e:
                logger.error("[processor] forward failed completely | to=%s | error=%s", number, e)
