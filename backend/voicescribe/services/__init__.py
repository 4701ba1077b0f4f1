"""
Services Module

Provides interfaces for the external services and the processing pipeline:
- ASR (Automatic Speech Recognition): OpenAI Whisper API
- WhatsApp Cloud API (media download, replies, forwarding)
- Sequential message queue and the per-message processor
"""

# ASR service
from .asr_base import (
    ASRService,
    TranscriptionResult,
    TranscriptSegment,
    MAX_AUDIO_BYTES,
)
from .asr_openai_adapter import OpenAIWhisperService

# WhatsApp
from .whatsapp import WhatsAppClient

# Queue
from .message_queue import MessageQueue, QueueItem
from .message_processor import MessageProcessor

__all__ = [
    # ASR
    "ASRService",
    "TranscriptionResult",
    "TranscriptSegment",
    "MAX_AUDIO_BYTES",
    "OpenAIWhisperService",
    # WhatsApp
    "WhatsAppClient",
    # Queue
    "MessageQueue",
    "QueueItem",
    "MessageProcessor",
]
