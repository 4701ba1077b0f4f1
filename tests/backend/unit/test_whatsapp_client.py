"""
Unit tests for services.whatsapp module.
Tests the two-step media download and outbound text/template messages against a mocked Graph API.
"""
import json

import httpx
import pytest

from voicescribe.core.errors import DownloadError, SendError
from voicescribe.services.whatsapp import WhatsAppClient

pytestmark = pytest.mark.asyncio

API = "https://graph.example.test/v18.0"
MEDIA_URL = "https://lookaside.example.test/media/abc"


def make_client(handler) -> WhatsAppClient:
    return WhatsAppClient(
        access_token="wa-token",
        phone_number_id="1234567890",
        api_url=API,
        transport=httpx.MockTransport(handler),
    )


class TestDownloadMedia:
    async def test_two_step_download(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if str(request.url) == f"{API}/media-1":
                return httpx.Response(200, json={"url": MEDIA_URL, "mime_type": "audio/ogg"})
            if str(request.url) == MEDIA_URL:
                return httpx.Response(200, content=b"OggS-binary")
            return httpx.Response(404)

        audio = await make_client(handler).download_media("media-1")

        assert audio == b"OggS-binary"
        assert [str(r.url) for r in seen] == [f"{API}/media-1", MEDIA_URL]
        assert all(r.headers["Authorization"] == "Bearer wa-token" for r in seen)

    async def test_metadata_failure_carries_status(self):
        def handler(request):
            return httpx.Response(401, json={"error": {"message": "expired"}})

        with pytest.raises(DownloadError) as exc_info:
            await make_client(handler).download_media("media-1")
        assert exc_info.value.status == 401

    async def test_binary_failure_carries_status(self):
        def handler(request):
            if str(request.url) == MEDIA_URL:
                return httpx.Response(404)
            return httpx.Response(200, json={"url": MEDIA_URL})

        with pytest.raises(DownloadError) as exc_info:
            await make_client(handler).download_media("media-1")
        assert exc_info.value.status == 404

    async def test_missing_url_is_download_error(self):
        def handler(request):
            return httpx.Response(200, json={"id": "media-1"})

        with pytest.raises(DownloadError):
            await make_client(handler).download_media("media-1")

    async def test_transport_error_is_download_error(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out")

        with pytest.raises(DownloadError) as exc_info:
            await make_client(handler).download_media("media-1")
        assert exc_info.value.status is None


class TestSendMessages:
    async def test_send_text_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        response = await make_client(handler).send_text("36301234567", "Szia!")

        assert response == {"messages": [{"id": "wamid.1"}]}
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"{API}/1234567890/messages"
        assert request.headers["Authorization"] == "Bearer wa-token"
        assert json.loads(request.content) == {
            "messaging_product": "whatsapp",
            "to": "36301234567",
            "type": "text",
            "text": {"body": "Szia!"},
        }

    async def test_send_template_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"messages": [{"id": "wamid.2"}]})

        await make_client(handler).send_template(
            "40712345678", "voice_transcription_forward", ["Anna (3630)", "5s | hungarian", "Szia"], language="hu"
        )

        body = json.loads(seen[0].content)
        assert body["type"] == "template"
        assert body["to"] == "40712345678"
        assert body["template"]["name"] == "voice_transcription_forward"
        assert body["template"]["language"] == {"code": "hu"}
        assert body["template"]["components"] == [
            {
                "type": "body",
                "parameters": [
                    {"type": "text", "text": "Anna (3630)"},
                    {"type": "text", "text": "5s | hungarian"},
                    {"type": "text", "text": "Szia"},
                ],
            }
        ]

    async def test_error_status_raises_send_error(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "outside 24h window"}})

        with pytest.raises(SendError) as exc_info:
            await make_client(handler).send_text("36301234567", "hi")
        assert exc_info.value.status == 400

    async def test_transport_error_raises_send_error(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        with pytest.raises(SendError):
            await make_client(handler).send_template("36301234567", "tpl", ["a"])

    async def test_empty_success_body(self):
        def handler(request):
            return httpx.Response(200)

        assert await make_client(handler).send_text("36301234567", "hi") == {}
