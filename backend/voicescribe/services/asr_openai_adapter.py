"""
OpenAI Whisper API Adapter

Sends audio bytes to the Whisper transcription endpoint, retrying transient
failures with exponential backoff (2s, 4s, 8s, ...).
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .asr_base import MAX_AUDIO_BYTES, ASRService, TranscriptionResult, TranscriptSegment
from ..config import settings
from ..core.errors import (
    RetryableTranscriptionError,
    SizeExceededError,
    TerminalTranscriptionError,
    TranscriptionError,
)

logger = logging.getLogger(__name__)

# Mime type -> file extension; Whisper detects the format from the file name
MIME_EXT_MAP = {
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/mp4a-latm": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/aac": "aac",
    "audio/flac": "flac",
    "audio/x-m4a": "m4a",
}

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503})


def audio_filename(mime_type: str) -> tuple[str, str]:
    """Return (filename, base mime type) for an upload, e.g. ("audio.ogg", "audio/ogg")."""
    base_mime = (mime_type or "").split(";")[0].strip().lower()
    return f"audio.{MIME_EXT_MAP.get(base_mime, 'ogg')}", base_mime or "audio/ogg"


def classify_status(status: int, body: str) -> TranscriptionError:
    if status in RETRYABLE_STATUSES:
        return RetryableTranscriptionError(f"Whisper API {status}: {body}", status=status)
    return TerminalTranscriptionError(f"Whisper API error {status}: {body}", status=status)


class OpenAIWhisperService(ASRService):
    """OpenAI Whisper API Service"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.api_url = settings.whisper_api_url
        self.model = settings.whisper_model
        self._transport = transport
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "OpenAI Whisper API"

    def is_available(self) -> bool:
        """Check if API key is configured"""
        return bool(self.api_key)

    async def transcribe(
        self,
        audio: bytes,
        mime_type: str,
        language: Optional[str] = None,
        max_retries: int = 3,
    ) -> TranscriptionResult:
        """
        Transcribe audio with up to `max_retries` attempts.

        429, 500, 502, 503 and transport failures are retried after
        2**attempt seconds; any other error status fails at once. After the
        last attempt the last error is raised.
        """
        if len(audio) > MAX_AUDIO_BYTES:
            raise SizeExceededError(len(audio), MAX_AUDIO_BYTES)
        max_retries = max(max_retries, 1)

        last_error: Optional[TranscriptionError] = None
        for attempt in range(1, max_retries + 1):
            try:
                return await self._request(audio, mime_type, language)
            except TranscriptionError as e:
                last_error = e

            if attempt < max_retries and isinstance(last_error, RetryableTranscriptionError):
                delay = 2 ** attempt
                logger.warning(
                    "[whisper] attempt %d failed, retrying in %ds | error=%s", attempt, delay, last_error
                )
                await self._sleep(delay)
            else:
                break

        logger.error("[whisper] transcription failed after retries | error=%s", last_error)
        raise last_error

    async def _request(self, audio: bytes, mime_type: str, language: Optional[str]) -> TranscriptionResult:
        filename, base_mime = audio_filename(mime_type)
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = {
            "model": self.model,
            "response_format": "verbose_json",
        }
        if language and language != "auto":
            data["language"] = language

        files = {"file": (filename, audio, base_mime)}
        try:
            async with httpx.AsyncClient(timeout=120, transport=self._transport) as client:
                resp = await client.post(self.api_url, headers=headers, data=data, files=files)
        except httpx.HTTPError as e:
            raise RetryableTranscriptionError(f"Whisper fetch failed: {e!r}") from e

        if resp.status_code >= 400:
            raise classify_status(resp.status_code, resp.text)

        try:
            result = resp.json()
        except ValueError as e:
            raise TerminalTranscriptionError(f"Whisper API returned invalid JSON: {resp.text[:200]}") from e
        if not isinstance(result, dict):
            raise TerminalTranscriptionError(f"Whisper API returned unexpected body: {resp.text[:200]}")
        return self._parse(result)

    @staticmethod
    def _parse(result: dict) -> TranscriptionResult:
        segments = [
            TranscriptSegment(
                text=(seg.get("text") or "").strip(),
                start_sec=seg.get("start", 0.0),
                end_sec=seg.get("end", 0.0),
            )
            for seg in result.get("segments") or []
        ]
        return TranscriptionResult(
            text=result.get("text") or "",
            language=result.get("language") or "unknown",
            duration=result.get("duration") or None,
            segments=segments,
        )

