# voicescribe/api/v1/deps.py
from fastapi import Depends, HTTPException, Request, status
from voicescribe.core.bootstrap import Services
from voicescribe.core.db import TranscriptionStore
from voicescribe.services.message_queue import MessageQueue


def get_services(request: Request) -> Services:
    """
    FastAPI dependency returning the services built on startup.

    Raises:
        HTTPException (503): If the application has not finished starting (SERVICE_UNAVAILABLE)
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="SERVICE_UNAVAILABLE")
    return services


def get_store(services: Services = Depends(get_services)) -> TranscriptionStore:
    return services.store


def get_queue(services: Services = Depends(get_services)) -> MessageQueue:
    return services.queue
