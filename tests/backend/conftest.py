from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fakes import FakeASR, FakeWhatsApp
from voicescribe.core.bootstrap import Services
from voicescribe.core.db import TranscriptionStore
from voicescribe.core.pubsub import Channel
from voicescribe.main import app
from voicescribe.services.message_processor import MessageProcessor
from voicescribe.services.message_queue import MessageQueue


@pytest.fixture
def events():
    return Channel()


@pytest.fixture
def store(tmp_path, events):
    """
    Fresh store backed by a snapshot file in a temporary directory.
    """
    s = TranscriptionStore(tmp_path / "transcriptions.db", events=events).open()
    yield s
    s.close()


@pytest.fixture
def whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def asr():
    return FakeASR()


@pytest.fixture
def forward_numbers():
    """Mutable list returned on every lookup, like the FORWARD_TO_NUMBERS env var."""
    return []


@pytest.fixture
def processor(store, whatsapp, asr, forward_numbers):
    return MessageProcessor(
        store=store,
        whatsapp=whatsapp,
        asr=asr,
        forward_numbers=lambda: list(forward_numbers),
        sleep=AsyncMock(),
    )


@pytest.fixture
def services(store, whatsapp, asr, processor):
    return Services(store=store, whatsapp=whatsapp, asr=asr, processor=processor, queue=MessageQueue(processor))


@pytest_asyncio.fixture
async def client(services):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with test services.
    Startup hooks are not run; services are attached directly.
    """
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await services.queue.join()
    del app.state.services
