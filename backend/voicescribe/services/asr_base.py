"""
ASR Service Abstract Interface

Provides unified interface for speech-to-text providers (currently the OpenAI Whisper API).
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from dataclasses import dataclass, field

# Largest upload the Whisper API accepts
MAX_AUDIO_BYTES = 25 * 1024 * 1024


@dataclass
class TranscriptSegment:
    """
    Transcription segment (sentence/segment level)

    Note: Timestamps here are relative time (from audio start), not Unix timestamps
    """
    text: str
    start_sec: float
    end_sec: float

    def __repr__(self):
        return f"TranscriptSegment(text='{self.text[:30]}...', start={self.start_sec:.2f}s, end={self.end_sec:.2f}s)"


@dataclass
class TranscriptionResult:
    """Complete transcription result"""
    text: str
    language: str = "unknown"  # Detected (or forced) language code
    duration: Optional[float] = None  # Total audio duration in seconds
    segments: List[TranscriptSegment] = field(default_factory=list)


class ASRService(ABC):
    """ASR Service Abstract Base Class"""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        mime_type: str,
        language: Optional[str] = None,
        max_retries: int = 3,
    ) -> TranscriptionResult:
        """
        Transcribe raw audio bytes

        Parameters:
        - audio: Audio file content
        - mime_type: MIME type as reported by the sender (parameters such as "; codecs=opus" allowed)
        - language: Optional forced language (e.g., "hu"); None or "auto" for detection
        - max_retries: Total attempts for transient failures

        Returns:
        - TranscriptionResult
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if service is available"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name (e.g., "OpenAI Whisper API")"""
        pass
