# voicescribe/main.py
import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicescribe.config import settings
from voicescribe.core.bootstrap import build_services, warn_missing_config
from voicescribe.core.db import close_db

from voicescribe.api.v1.routers import settings as settings_router, stream, transcriptions, upload, webhook

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

app = FastAPI(title=settings.APP_NAME, version=settings.VERSION)

# CORS (dashboard may be served from another origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    app.state.services = build_services(settings)
    warn_missing_config(settings)
    logger.info(
        "[startup] %s running | dashboard=http://localhost:%d | webhook=/webhook | upload=/api/transcribe",
        settings.APP_NAME,
        settings.port,
    )


@app.on_event("shutdown")
async def on_shutdown():
    services = getattr(app.state, "services", None)
    if services is not None:
        if len(services.queue) or services.queue.is_draining:
            logger.info("[shutdown] waiting for %d queued message(s)", len(services.queue))
        await services.queue.join()
    close_db()


# Webhook has no prefix (Meta calls /webhook)
app.include_router(webhook.router)

# REST
app.include_router(upload.router)
app.include_router(transcriptions.router)
app.include_router(settings_router.router)
app.include_router(stream.router)


@app.get("/api/health")
def health():
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - STARTED_AT),
        "version": settings.VERSION,
    }
