# voicescribe/schemas/transcription.py
"""
Pydantic schemas for transcription records, listing, statistics and settings.
Records are what the store returns and what the dashboard receives.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

Source = Literal["whatsapp", "manual"]


class TranscriptionRecord(BaseModel):
    """
    One persisted transcription.
    Field names match the storage columns.
    """
    id: int  # Assigned by the store, never changes
    sender: Optional[str] = None  # Sender phone number, or "manual" for uploads
    sender_name: Optional[str] = None  # Display name shown in the dashboard
    timestamp: Optional[int] = None  # Message time (epoch seconds)
    transcription: str  # Transcribed text, editable from the dashboard
    language: Optional[str] = None  # Detected or forced language code
    duration: Optional[float] = None  # Audio length in seconds
    source: Source = "whatsapp"
    created_at: str  # UTC "YYYY-MM-DD HH:MM:SS", assigned by the store


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class TranscriptionPage(BaseModel):
    data: List[TranscriptionRecord]
    pagination: Pagination


class LanguageCount(BaseModel):
    language: str
    count: int


class StatsOut(BaseModel):
    totalTranscriptions: int
    totalDurationSeconds: float
    totalDurationMinutes: float
    totalDurationHours: float
    last24Hours: int
    bySource: Dict[str, int]
    byLanguage: List[LanguageCount]  # Top 10, most frequent first
    diskUsageBytes: int
    diskUsageMB: float


class TranscriptionTextIn(BaseModel):
    """
    Request model for the inline edit of a transcription.
    """
    transcription: str


class SettingsPatchIn(BaseModel):
    """
    Free-form settings patch; the store ignores keys outside its allow-list.
    """
    model_config = {"extra": "allow"}

    def changes(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class UploadOut(BaseModel):
    id: int
    text: str
    language: str
    duration: Optional[float] = None
    segments: List[Dict[str, Any]] = []
