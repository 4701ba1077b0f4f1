import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from voicescribe.api.v1.deps import get_store
from voicescribe.core.db import MAX_PAGE_SIZE, TranscriptionStore
from voicescribe.schemas.transcription import (
    StatsOut,
    TranscriptionPage,
    TranscriptionRecord,
    TranscriptionTextIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transcriptions"])


@router.get("/transcriptions", response_model=TranscriptionPage)
async def list_transcriptions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    source: str | None = Query(None),
    search: str | None = Query(None),
    store: TranscriptionStore = Depends(get_store),
):
    """
    Paginated list, newest first.

    Args:
        page: 1-based page number
        limit: Page size; values above the store maximum are capped
        source: "whatsapp", "manual" or "all"
        search: Case-insensitive substring of the text or sender name
    """
    return store.list_transcriptions(
        page=page,
        limit=min(limit, MAX_PAGE_SIZE),
        source=source or None,
        search=search or None,
    )


@router.get("/transcriptions/{tid}", response_model=TranscriptionRecord)
async def get_transcription(tid: int, store: TranscriptionStore = Depends(get_store)):
    item = store.get_transcription(tid)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NOT_FOUND")
    return item


@router.patch("/transcriptions/{tid}", response_model=dict)
async def update_transcription(
    tid: int,
    body: TranscriptionTextIn,
    store: TranscriptionStore = Depends(get_store),
):
    """
    Inline edit of the transcription text.

    Raises:
        HTTPException (404): If the transcription does not exist
    """
    if not store.update_transcription(tid, body.transcription):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NOT_FOUND")
    return {"success": True}


@router.delete("/transcriptions/{tid}", response_model=dict)
async def delete_transcription(tid: int, store: TranscriptionStore = Depends(get_store)):
    if not store.delete_transcription(tid):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NOT_FOUND")
    return {"success": True}


@router.delete("/transcriptions", response_model=dict)
async def delete_all_transcriptions(store: TranscriptionStore = Depends(get_store)):
    deleted = store.delete_all_transcriptions()
    logger.warning("[api] deleted all transcriptions | count=%d", deleted)
    return {"success": True, "deleted": deleted}


@router.get("/export")
async def export_transcriptions(store: TranscriptionStore = Depends(get_store)):
    """
    Download every transcription as a JSON file.
    """
    data = [r.model_dump() for r in store.export_all()]
    return JSONResponse(
        content=data,
        headers={"Content-Disposition": 'attachment; filename="voicescribe_export.json"'},
    )


@router.get("/stats", response_model=StatsOut)
async def get_stats(store: TranscriptionStore = Depends(get_store)):
    return store.get_stats()
