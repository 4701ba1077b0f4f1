# voicescribe/core/bootstrap.py
"""
Bootstrap module for application initialization.
Builds the long-lived services (store, API clients, message queue) and
reports configuration that is missing on startup.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from voicescribe.config import Settings, settings as default_settings
from voicescribe.core.db import TranscriptionStore, init_db
from voicescribe.core.pubsub import Channel
from voicescribe.services.asr_base import ASRService
from voicescribe.services.asr_openai_adapter import OpenAIWhisperService
from voicescribe.services.message_processor import MessageProcessor
from voicescribe.services.message_queue import MessageQueue
from voicescribe.services.whatsapp import WhatsAppClient

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: TranscriptionStore
    whatsapp: WhatsAppClient
    asr: ASRService
    processor: MessageProcessor
    queue: MessageQueue


def build_services(
    cfg: Settings = default_settings,
    events: Optional[Channel] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Services:
    """
    Open the store and wire the processing pipeline.

    `transport` replaces the network for both API clients (used by tests).
    """
    store = init_db(cfg.db_path, events=events)
    whatsapp = WhatsAppClient(transport=transport)
    asr = OpenAIWhisperService(transport=transport)
    processor = MessageProcessor(
        store=store,
        whatsapp=whatsapp,
        asr=asr,
        forward_numbers=cfg.forward_to_numbers,
        template_name=cfg.forward_template_name,
        template_language=cfg.forward_template_language,
    )
    return Services(
        store=store,
        whatsapp=whatsapp,
        asr=asr,
        processor=processor,
        queue=MessageQueue(processor),
    )


def warn_missing_config(cfg: Settings = default_settings) -> None:
    if not cfg.openai_api_key:
        logger.warning("[bootstrap] OPENAI_API_KEY not set -> transcription will fail")
    if not cfg.whatsapp_access_token:
        logger.warning("[bootstrap] WHATSAPP_ACCESS_TOKEN not set -> WhatsApp integration disabled")
    if not cfg.whatsapp_verify_token:
        logger.warning("[bootstrap] WHATSAPP_VERIFY_TOKEN not set -> webhook verification will reject all")
    if not cfg.whatsapp_app_secret:
        logger.warning("[bootstrap] WHATSAPP_APP_SECRET not set -> webhook signatures are not checked")
