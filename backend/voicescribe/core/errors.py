# voicescribe/core/errors.py
"""
Domain exceptions raised by the WhatsApp client, the Whisper client and the store.

The message queue relies on these types to decide what is retried, what is
reported back to the sender and what is only logged.
"""
from typing import Optional


class VoiceScribeError(RuntimeError):
    """Base class for all VoiceScribe errors."""


class DownloadError(VoiceScribeError):
    """Media lookup or download failed. `status` is None for transport failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class SizeExceededError(VoiceScribeError):
    """Audio is larger than the transcription API accepts."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Audio file too large ({round(size / 1024 / 1024)}MB). Maximum: {limit // (1024 * 1024)}MB."
        )
        self.size = size
        self.limit = limit


class TranscriptionError(VoiceScribeError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RetryableTranscriptionError(TranscriptionError):
    """Rate limited (429), server side failure (500/502/503) or transport failure."""


class TerminalTranscriptionError(TranscriptionError):
    """Any other client error; retrying would not help."""


class SendError(VoiceScribeError):
    """Outbound WhatsApp message (text or template) was rejected or not delivered."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class PersistenceError(VoiceScribeError):
    """The store could not read or write its snapshot file."""
