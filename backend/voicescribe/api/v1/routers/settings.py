from fastapi import APIRouter, Depends
from voicescribe.api.v1.deps import get_store
from voicescribe.config import settings
from voicescribe.core.db import TranscriptionStore
from voicescribe.schemas.transcription import SettingsPatchIn

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=dict)
async def get_settings(store: TranscriptionStore = Depends(get_store)):
    """
    Stored settings plus read-only connection info for the dashboard.
    """
    data = store.get_all_settings()
    data["webhook_url"] = settings.base_url.rstrip("/") + "/webhook"
    data["whatsapp_connected"] = settings.whatsapp_connected
    return data


@router.patch("", response_model=dict)
async def update_settings(body: SettingsPatchIn, store: TranscriptionStore = Depends(get_store)):
    """
    Update settings. Only auto_reply and default_language can be changed;
    other keys are ignored.
    """
    applied = store.update_settings(body.changes())
    return {"success": True, "applied": applied}
